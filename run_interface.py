#!/usr/bin/env python3
"""
Easy launcher for the networking matcher web interface
"""
import subprocess
import sys
import os

def main():
    """Launch Streamlit interface"""
    # Get the directory where this script is located
    script_dir = os.path.dirname(os.path.abspath(__file__))
    app_path = os.path.join(script_dir, "app.py")

    port = os.getenv("PORT", "8501")

    # Launch Streamlit
    print("🚀 Launching networking matcher web interface...")
    print(f"📝 Open http://localhost:{port} if the browser does not open automatically")
    print("🛑 Press Ctrl+C to stop the server")
    print("")

    subprocess.run([sys.executable, "-m", "streamlit", "run", app_path, "--server.port", port])

if __name__ == "__main__":
    main()
