"""
Directory service for the networking matcher
Handles all member, vector and intro database operations
Tables: members, vectors (one row per member), intros (unique per member/candidate/tier)
"""
import json
import logging
import pandas as pd
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional

from config import TIERS
from supabase_client import get_admin_client
from utils.helpers import generate_id

logger = logging.getLogger(__name__)

INTRO_STATUSES = ('draft', 'acknowledged')

CANDIDATE_FIELDS = "member_id, name, org, role, industry, city"


class DirectoryError(Exception):
    """Raised when the database cannot complete a read or write"""
    pass


class DirectoryService:
    def __init__(self, client=None):
        self.client = client if client is not None else get_admin_client()

    def _execute(self, query, action: str):
        """Run a query, converting any client failure into DirectoryError"""
        try:
            return query.execute()
        except Exception as e:
            logger.error(f"Database error while trying to {action}: {e}")
            raise DirectoryError(f"Failed to {action}: {e}") from e

    # ==========================================
    # MEMBER OPERATIONS
    # ==========================================

    def create_member(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a new member with a generated ID

        Args:
            data: Validated registration fields

        Returns:
            The stored member row
        """
        record = dict(data)
        record.setdefault("member_id", generate_id("member"))
        record.setdefault("consent", True)
        record.setdefault("created_at", datetime.now(timezone.utc).isoformat())

        response = self._execute(self.client.table("members").insert(record), "create member")
        return response.data[0] if response.data else record

    def get_member(self, member_id: str) -> Optional[Dict[str, Any]]:
        """Get a single member by ID, None when not found"""
        response = self._execute(
            self.client.table("members").select("*").eq("member_id", member_id).limit(1),
            f"load member {member_id}"
        )
        return response.data[0] if response.data else None

    def list_members(self) -> List[Dict[str, Any]]:
        """All members, newest first"""
        response = self._execute(
            self.client.table("members").select("*").order("created_at", desc=True),
            "list members"
        )
        return response.data or []

    def list_consenting_members(self, exclude_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Candidate pool: every consenting member except exclude_id"""
        query = self.client.table("members").select("*").eq("consent", True)
        if exclude_id:
            query = query.neq("member_id", exclude_id)
        response = self._execute(query.order("created_at"), "list consenting members")
        return response.data or []

    def delete_member(self, member_id: str) -> None:
        """Delete a member together with its vector and every intro naming it"""
        self._execute(
            self.client.table("intros").delete().or_(
                f"for_member_id.eq.{member_id},to_member_id.eq.{member_id}"
            ),
            f"delete intros for {member_id}"
        )
        self._execute(
            self.client.table("vectors").delete().eq("member_id", member_id),
            f"delete vector for {member_id}"
        )
        self._execute(
            self.client.table("members").delete().eq("member_id", member_id),
            f"delete member {member_id}"
        )
        logger.info(f"Deleted member {member_id}")

    def delete_all_members(self) -> None:
        """Remove every member, vector and intro"""
        self.delete_all_intros()
        self._execute(self.client.table("vectors").delete().neq("member_id", ""), "delete all vectors")
        self._execute(self.client.table("members").delete().neq("member_id", ""), "delete all members")
        logger.info("Deleted all members")

    # ==========================================
    # EMBEDDING OPERATIONS
    # ==========================================

    def get_embedding(self, member_id: str) -> Optional[str]:
        """Raw stored vector text for a member, None when absent"""
        response = self._execute(
            self.client.table("vectors").select("embedding_ops").eq("member_id", member_id).limit(1),
            f"load vector for {member_id}"
        )
        if not response.data:
            return None
        return response.data[0].get("embedding_ops")

    def save_embedding(self, member_id: str, embedding: List[float]) -> None:
        """Store (or overwrite) the vector for a member"""
        self._execute(
            self.client.table("vectors").upsert(
                {"member_id": member_id, "embedding_ops": json.dumps(embedding)},
                on_conflict="member_id"
            ),
            f"save vector for {member_id}"
        )

    def members_without_embeddings(self) -> List[Dict[str, Any]]:
        """Members that have no stored vector yet"""
        members = self.list_members()
        response = self._execute(
            self.client.table("vectors").select("member_id, embedding_ops"),
            "list vectors"
        )
        embedded = {row["member_id"] for row in (response.data or []) if row.get("embedding_ops")}
        return [m for m in members if m.get("member_id") not in embedded]

    # ==========================================
    # INTROS
    # ==========================================

    def upsert_intro(self, intro: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert or overwrite the intro for (for_member_id, to_member_id, tier)

        status is never sent, so an acknowledged intro stays acknowledged when
        its tier is regenerated; new rows get the column default 'draft'.

        Args:
            intro: Row with for_member_id, to_member_id, tier, score,
                score_breakdown (dict or JSON text) and the three rationale fields

        Returns:
            The stored intro row
        """
        if intro.get("tier") not in TIERS:
            raise ValueError(f"Unknown tier: {intro.get('tier')}")

        record = dict(intro)
        record.pop("status", None)
        if isinstance(record.get("score_breakdown"), (dict, list)):
            record["score_breakdown"] = json.dumps(record["score_breakdown"])

        response = self._execute(
            self.client.table("intros").upsert(record, on_conflict="for_member_id,to_member_id,tier"),
            f"save intro {record.get('for_member_id')} -> {record.get('to_member_id')}"
        )
        return response.data[0] if response.data else record

    def get_intros(self, member_id: str, tier: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Intros for a member, highest score first, each joined with its candidate

        Args:
            member_id: The member the intros were generated for
            tier: Optional 'top' or 'broader' filter

        Returns:
            Intro rows with 'candidate' (dict) and 'score_breakdown_parsed'
        """
        query = self.client.table("intros") \
            .select(f"*, candidate:to_member_id({CANDIDATE_FIELDS})") \
            .eq("for_member_id", member_id)

        if tier:
            query = query.eq("tier", tier)

        response = self._execute(query.order("score", desc=True), f"load intros for {member_id}")

        intros = response.data or []
        for intro in intros:
            raw = intro.get("score_breakdown")
            if isinstance(raw, str) and raw:
                try:
                    intro["score_breakdown_parsed"] = json.loads(raw)
                except json.JSONDecodeError:
                    intro["score_breakdown_parsed"] = None
            else:
                intro["score_breakdown_parsed"] = raw or None
        return intros

    def acknowledge_intro(self, intro_id: str) -> Dict[str, Any]:
        """Mark an intro as seen by its member"""
        response = self._execute(
            self.client.table("intros").update({"status": "acknowledged"}).eq("intro_id", intro_id),
            f"acknowledge intro {intro_id}"
        )
        if not response.data:
            raise DirectoryError(f"Intro not found: {intro_id}")
        return response.data[0]

    def delete_all_intros(self) -> None:
        """Reset every generated intro"""
        self._execute(self.client.table("intros").delete().neq("for_member_id", ""), "delete all intros")
        logger.info("Deleted all intros")

    # ==========================================
    # ADMIN
    # ==========================================

    def list_members_with_counts(self) -> List[Dict[str, Any]]:
        """All members with top_count, broader_count and acknowledged_count"""
        members = self.list_members()
        response = self._execute(
            self.client.table("intros").select("for_member_id, tier, status"),
            "count intros"
        )

        counts: Dict[str, Dict[str, int]] = {}
        for intro in response.data or []:
            entry = counts.setdefault(
                intro["for_member_id"],
                {"top_count": 0, "broader_count": 0, "acknowledged_count": 0}
            )
            if intro.get("tier") == "top":
                entry["top_count"] += 1
            elif intro.get("tier") == "broader":
                entry["broader_count"] += 1
            if intro.get("status") == "acknowledged":
                entry["acknowledged_count"] += 1

        empty = {"top_count": 0, "broader_count": 0, "acknowledged_count": 0}
        return [{**member, **counts.get(member.get("member_id"), empty)} for member in members]

    def export_to_dataframe(self) -> pd.DataFrame:
        """Export all members with their intro counts to a pandas DataFrame"""
        rows = self.list_members_with_counts()
        columns = [
            "member_id", "name", "org", "role", "industry", "city", "consent",
            "top_count", "broader_count", "acknowledged_count", "created_at"
        ]
        df = pd.DataFrame(rows)
        if df.empty:
            return pd.DataFrame(columns=columns)
        return df[[c for c in columns if c in df.columns]]

    def get_stats(self) -> Dict[str, int]:
        """Get directory statistics"""
        total_members = self._execute(
            self.client.table("members").select("member_id", count="exact"),
            "count members"
        ).count or 0

        top_intros = self._execute(
            self.client.table("intros").select("intro_id", count="exact").eq("tier", "top"),
            "count top intros"
        ).count or 0

        broader_intros = self._execute(
            self.client.table("intros").select("intro_id", count="exact").eq("tier", "broader"),
            "count broader intros"
        ).count or 0

        acknowledged = self._execute(
            self.client.table("intros").select("intro_id", count="exact").eq("status", "acknowledged"),
            "count acknowledged intros"
        ).count or 0

        return {
            "total_members": total_members,
            "top_intros": top_intros,
            "broader_intros": broader_intros,
            "acknowledged_intros": acknowledged,
        }
