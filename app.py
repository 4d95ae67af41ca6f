#!/usr/bin/env python3
"""
Networking Event Matcher - Streamlit Web Application
Features:
- Attendee registration
- Attendee dashboard with top and broader intros
- Admin console: members, embeddings, resets, scoring debug, export
"""
import streamlit as st

from auth_service import AuthService, init_session_state, require_admin
from directory_service import DirectoryService, DirectoryError
from match_generator import MatchGenerator

# Page configuration
st.set_page_config(
    page_title="Networking Event Matcher",
    page_icon="🤝",
    layout="wide",
    initial_sidebar_state="expanded"
)

# Custom CSS
st.markdown("""
<style>
    .main-header {
        font-size: 2.5rem;
        font-weight: bold;
        color: #1e3a5f;
        margin-bottom: 0.5rem;
    }
    .sub-header {
        font-size: 1.2rem;
        color: #666;
        margin-bottom: 1.5rem;
    }
    .intro-card {
        background: #f8f9fa;
        padding: 1rem;
        border-radius: 0.5rem;
        border-left: 4px solid #667eea;
        margin-bottom: 0.5rem;
    }
    .match-score {
        background: #ffc107;
        color: #000;
        padding: 0.2rem 0.5rem;
        border-radius: 0.25rem;
        font-weight: bold;
    }
</style>
""", unsafe_allow_html=True)

INDUSTRIES = [
    "Technology", "Digital Marketing", "Real Estate", "Finance", "Consulting",
    "Legal Services", "E-Commerce", "Media", "Online Education", "Food & Hospitality",
    "Healthcare", "Manufacturing", "Other"
]


@st.cache_resource
def get_match_generator() -> MatchGenerator:
    return MatchGenerator()


@st.cache_resource
def get_directory_service() -> DirectoryService:
    return DirectoryService()


def main():
    init_session_state()

    with st.sidebar:
        st.markdown("**Networking Event Matcher**")
        st.markdown("---")
        page = st.radio("Navigation", ["Register", "My Intros", "Admin"], label_visibility="collapsed")

        if st.session_state.authenticated:
            st.markdown("---")
            st.caption(f"Admin: {st.session_state.admin_email}")
            if st.button("Logout", use_container_width=True):
                AuthService().sign_out()
                st.session_state.authenticated = False
                st.session_state.admin_email = None
                st.rerun()

    if page == "Register":
        show_registration()
    elif page == "My Intros":
        show_dashboard()
    elif page == "Admin":
        if st.session_state.authenticated:
            show_admin()
        else:
            show_login_form()

# ==========================================
# REGISTRATION
# ==========================================

def show_registration():
    """Attendee registration form"""
    st.markdown('<div class="main-header">Register</div>', unsafe_allow_html=True)
    st.markdown('<div class="sub-header">Tell us about your business so we can introduce you to the right people</div>', unsafe_allow_html=True)

    with st.form("register"):
        col1, col2 = st.columns(2)

        with col1:
            name = st.text_input("Name*")
            org = st.text_input("Organization*")
            role = st.text_input("Role*", placeholder="Founder & CEO")
            email = st.text_input("Email")

        with col2:
            industry = st.selectbox("Industry*", INDUSTRIES)
            city = st.text_input("City*")
            rev_driver = st.text_input("What drives your revenue?")
            current_constraint = st.text_input("What's holding your business back right now?")

        assets = st.text_area("What you bring (comma-separated)", placeholder="SEO, content strategy, a network of retail buyers")
        needs = st.text_area("What you need (comma-separated)", placeholder="Funding, legal advice, enterprise clients")
        fun_fact = st.text_input("Fun fact about you")
        consent = st.checkbox("I agree to be matched with other attendees", value=True)

        if st.form_submit_button("Register", type="primary"):
            result = get_match_generator().register_member({
                "name": name,
                "org": org,
                "role": role,
                "industry": industry,
                "city": city,
                "rev_driver": rev_driver,
                "current_constraint": current_constraint,
                "assets": assets,
                "needs": needs,
                "fun_fact": fun_fact,
                "email": email,
                "consent": consent,
            })
            if result["success"]:
                st.session_state.member_id = result["member_id"]
                st.success(f"Registered! Your attendee ID is **{result['member_id']}**. Keep it to view your intros.")
                if not result["embedded"]:
                    st.info("Your profile will be analyzed when your matches are generated.")
            else:
                st.error(f"Registration failed: {result.get('error')}")

# ==========================================
# ATTENDEE DASHBOARD
# ==========================================

def show_dashboard():
    """Intros for one attendee"""
    st.markdown('<div class="main-header">My Intros</div>', unsafe_allow_html=True)

    member_id = st.text_input("Attendee ID", value=st.session_state.member_id or "")
    if not member_id:
        st.info("Enter the attendee ID you received at registration.")
        return
    st.session_state.member_id = member_id

    generator = get_match_generator()

    col1, col2 = st.columns(2)
    with col1:
        if st.button("Generate Top Matches", use_container_width=True):
            with st.spinner("Researching your best matches (this can take a few minutes)..."):
                result = generator.generate_matches_for_member(member_id, "top")
            show_generation_result(result)
    with col2:
        if st.button("Generate Broader Matches", use_container_width=True):
            with st.spinner("Finding more people you should meet..."):
                result = generator.generate_matches_for_member(member_id, "broader")
            show_generation_result(result)

    dashboard = generator.get_dashboard(member_id)
    if not dashboard["success"]:
        st.error(dashboard.get("error"))
        return

    member = dashboard["member"]
    st.markdown(f"### {member.get('name')} · {member.get('org')}")

    st.markdown("## Top Matches")
    if not dashboard["top"]:
        st.caption("No top matches yet.")
    for intro in dashboard["top"]:
        display_intro_card(intro)

    st.markdown("## Broader Network")
    if not dashboard["broader"]:
        st.caption("No broader matches yet.")
    for intro in dashboard["broader"]:
        display_intro_card(intro, expanded=False)


def show_generation_result(result: dict):
    if result["success"]:
        st.success(f"Generated {result['count']} {result['tier']} intros")
    else:
        st.error(f"Generation failed: {result.get('error')}")


def display_intro_card(intro: dict, expanded: bool = True):
    """Render one intro with its rationale and score breakdown"""
    candidate = intro.get("candidate") or {}
    header = f"{candidate.get('name', 'Unknown')} · {candidate.get('org', '')} · {intro.get('score', 0):.0f}/100"

    with st.expander(header, expanded=expanded):
        st.caption(f"{candidate.get('role', '')} · {candidate.get('industry', '')} · {candidate.get('city', '')}")

        st.markdown("**Why you should connect**")
        st.write(intro.get("strategic_rationale"))
        st.markdown("**Collaboration angle**")
        st.write(intro.get("collaboration_angle"))
        st.markdown("**Conversation openers**")
        st.write(intro.get("conversation_openers"))

        breakdown = intro.get("score_breakdown_parsed") or {}
        if breakdown.get("breakdown"):
            with st.container():
                st.markdown("**Score breakdown**")
                for category in breakdown["breakdown"]:
                    st.markdown(f"- {category['label']}: {category['points']}/{category['max_points']} · {category['justification']}")
                    for evidence in category.get("evidence", []):
                        st.caption(f"  {evidence}")

        if intro.get("status") == "acknowledged":
            st.caption("Acknowledged")
        elif st.button("Mark as seen", key=f"ack_{intro['intro_id']}"):
            try:
                get_directory_service().acknowledge_intro(intro["intro_id"])
                st.rerun()
            except DirectoryError as e:
                st.error(str(e))

# ==========================================
# ADMIN
# ==========================================

def show_login_form():
    """Admin login form"""
    st.markdown('<div class="main-header">Admin Login</div>', unsafe_allow_html=True)

    with st.form("login_form"):
        email = st.text_input("Email", placeholder="admin@example.com")
        password = st.text_input("Password", type="password")
        submit = st.form_submit_button("Login", use_container_width=True)

        if submit:
            if email and password:
                result = AuthService().sign_in(email, password)
                if result["success"]:
                    st.session_state.authenticated = True
                    st.session_state.admin_email = email
                    st.success("Login successful!")
                    st.rerun()
                else:
                    st.error(f"Login failed: {result.get('error', 'Unknown error')}")
            else:
                st.warning("Please enter email and password")


@require_admin
def show_admin():
    """Admin panel"""
    st.markdown('<div class="main-header">Admin Panel</div>', unsafe_allow_html=True)

    show_stats()

    tab1, tab2, tab3, tab4 = st.tabs(["Members", "Embeddings", "Scoring Debug", "Reset"])

    with tab1:
        show_members()

    with tab2:
        show_embeddings()

    with tab3:
        show_scoring_debug()

    with tab4:
        show_reset()


def show_stats():
    try:
        stats = get_directory_service().get_stats()
    except DirectoryError as e:
        st.error(str(e))
        return

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Members", stats["total_members"])
    col2.metric("Top Intros", stats["top_intros"])
    col3.metric("Broader Intros", stats["broader_intros"])
    col4.metric("Acknowledged", stats["acknowledged_intros"])


def show_members():
    """Member list with intro counts, export and delete"""
    st.markdown("### Members")
    directory_service = get_directory_service()

    try:
        df = directory_service.export_to_dataframe()
    except DirectoryError as e:
        st.error(str(e))
        return

    if df.empty:
        st.info("No members registered yet.")
        return

    st.dataframe(df, use_container_width=True)
    st.download_button(
        "Download CSV",
        data=df.to_csv(index=False),
        file_name="members_export.csv",
        mime="text/csv"
    )

    st.markdown("---")
    options = {f"{row['name']} ({row['member_id']})": row["member_id"] for _, row in df.iterrows()}
    selected = st.selectbox("Member", list(options.keys()))
    member_id = options[selected]

    col1, col2, col3 = st.columns(3)
    generator = get_match_generator()
    with col1:
        if st.button("Generate Top", use_container_width=True):
            with st.spinner("Generating..."):
                show_generation_result(generator.generate_matches_for_member(member_id, "top"))
    with col2:
        if st.button("Generate Broader", use_container_width=True):
            with st.spinner("Generating..."):
                show_generation_result(generator.generate_matches_for_member(member_id, "broader"))
    with col3:
        if st.button("Delete Member", type="secondary", use_container_width=True):
            try:
                directory_service.delete_member(member_id)
                st.success(f"Deleted {selected}")
                st.rerun()
            except DirectoryError as e:
                st.error(str(e))


def show_embeddings():
    st.markdown("### Profile Embeddings")
    generator = get_match_generator()

    col1, col2 = st.columns(2)
    result = None
    with col1:
        if st.button("Generate Missing Embeddings", use_container_width=True):
            with st.spinner("Embedding profiles..."):
                result = generator.generate_missing_embeddings()
    with col2:
        if st.button("Regenerate All Embeddings", use_container_width=True):
            with st.spinner("Re-embedding every profile..."):
                result = generator.regenerate_all_embeddings()

    if result is None:
        return
    if not result["success"]:
        st.error(result.get("error"))
        return

    st.success(f"Updated {len(result['updated'])} embeddings")
    if result["failed"]:
        st.warning(f"{len(result['failed'])} failed")
        st.dataframe(result["failed"])


def show_scoring_debug():
    st.markdown("### Scoring Debug")
    member_id = st.text_input("Member ID", key="debug_member_id")
    if not member_id or not st.button("Run Scoring Report"):
        return

    report = get_match_generator().debug_scores(member_id)
    if not report["success"]:
        st.error(report.get("error"))
        return

    stats = report["stats"]
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Candidates", stats["total_candidates"])
    col2.metric("Max", stats["max_score"])
    col3.metric("Average", stats["avg_score"])
    col4.metric("Errors", stats["errors"])

    st.bar_chart(report["distribution"])

    for entry in report["candidates"]:
        label = f"{entry.get('name')} · {entry['score']}/100 · {entry.get('quality_tier') or 'error'}"
        with st.expander(label):
            if entry.get("error"):
                st.error(entry["error"])
                continue
            for category in entry["breakdown"]:
                st.markdown(f"- **{category['label']}**: {category['points']}/{category['max_points']} · {category['justification']}")


def show_reset():
    st.markdown("### Reset")
    st.warning("These actions cannot be undone.")
    confirm = st.checkbox("I understand")
    directory_service = get_directory_service()

    col1, col2 = st.columns(2)
    with col1:
        if st.button("Reset All Intros", disabled=not confirm, use_container_width=True):
            try:
                directory_service.delete_all_intros()
                st.success("All intros deleted")
            except DirectoryError as e:
                st.error(str(e))
    with col2:
        if st.button("Delete All Members", disabled=not confirm, use_container_width=True):
            try:
                directory_service.delete_all_members()
                st.success("All members deleted")
            except DirectoryError as e:
                st.error(str(e))


if __name__ == "__main__":
    main()
