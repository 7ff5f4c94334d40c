"""Kit persistence: organizations, profiles, jobs, competencies, questions.

`KitRepository` is the interface the wizard and the API depend on;
`SqliteKitRepository` is the shipped implementation. A kit (job row,
competency rows, question rows) is always written in a single transaction,
so a failed save leaves nothing behind.
"""

import logging
import secrets
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator
from uuid import uuid4

from models.kit import (
    Competency,
    JobDraft,
    JobStatus,
    JobSummary,
    KitScore,
    Organization,
    PersistedKit,
    Profile,
    Question,
    QuestionCategory,
)
from services.errors import (
    InvalidTransitionError,
    KitNotFoundError,
    PermissionDeniedError,
    PersistenceError,
)

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
MEMBER_ROLE = "member"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS organizations (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    invite_code TEXT NOT NULL UNIQUE,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS profiles (
    id TEXT PRIMARY KEY,
    organization_id TEXT REFERENCES organizations(id) ON DELETE SET NULL,
    role TEXT NOT NULL DEFAULT 'member' CHECK (role IN ('admin', 'member')),
    full_name TEXT NOT NULL DEFAULT ''
);
CREATE TABLE IF NOT EXISTS jobs (
    id TEXT PRIMARY KEY,
    org_id TEXT NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
    profile_id TEXT NOT NULL REFERENCES profiles(id),
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'draft'
        CHECK (status IN ('draft', 'pending', 'approved', 'rejected')),
    kit_score INTEGER,
    kit_score_explanation TEXT,
    rejection_reason TEXT,
    created_at TEXT NOT NULL,
    submitted_at TEXT,
    reviewed_at TEXT,
    reviewed_by TEXT
);
CREATE TABLE IF NOT EXISTS competencies (
    id TEXT PRIMARY KEY,
    job_id TEXT NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    position INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS questions (
    id TEXT PRIMARY KEY,
    competency_id TEXT NOT NULL REFERENCES competencies(id) ON DELETE CASCADE,
    text TEXT NOT NULL,
    category TEXT NOT NULL,
    explanation TEXT NOT NULL DEFAULT '',
    rubric_good TEXT NOT NULL DEFAULT '',
    rubric_bad TEXT NOT NULL DEFAULT '',
    position INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_jobs_org ON jobs(org_id);
CREATE INDEX IF NOT EXISTS idx_competencies_job ON competencies(job_id);
CREATE INDEX IF NOT EXISTS idx_questions_competency ON questions(competency_id);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid4())


class KitRepository(ABC):
    """Storage for organizations and interview kits."""

    @abstractmethod
    def get_profile(self, user_id: str) -> Profile | None:
        """Return the user's profile, or None if the user has none yet."""

    @abstractmethod
    def create_organization(self, name: str, owner_id: str) -> Organization:
        """Create an organization; the owner joins it as admin."""

    @abstractmethod
    def join_organization(self, invite_code: str, user_id: str) -> Organization:
        """Join the organization holding `invite_code` as a member."""

    @abstractmethod
    def save_kit(
        self,
        org_id: str,
        profile_id: str,
        job: JobDraft,
        competencies: list[Competency],
        questions: list[Question],
        score: KitScore | None = None,
    ) -> str:
        """Persist a job with its competencies and questions. Returns the job id."""

    @abstractmethod
    def get_kit(self, job_id: str) -> PersistedKit | None:
        """Load a saved kit with its competencies and questions."""

    @abstractmethod
    def list_jobs(
        self,
        org_id: str,
        profile_id: str | None = None,
        status: JobStatus | None = None,
    ) -> list[JobSummary]:
        """List an organization's jobs, newest first."""

    @abstractmethod
    def delete_job(self, job_id: str) -> None:
        """Delete a job and everything under it."""

    @abstractmethod
    def submit_for_review(self, job_id: str) -> JobSummary:
        """Move a draft (or rejected) job to pending."""

    @abstractmethod
    def review_job(
        self,
        job_id: str,
        reviewer_id: str,
        approve: bool,
        reason: str | None = None,
    ) -> JobSummary:
        """Approve or reject a pending job. Only organization admins may review."""

    def get_organization_id(self, user_id: str) -> str:
        profile = self.get_profile(user_id)
        if profile is None or not profile.organization_id:
            raise PersistenceError("You need to belong to an organization to save a kit.")
        return profile.organization_id


class SqliteKitRepository(KitRepository):
    def __init__(self, db_path: str = ":memory:") -> None:
        self.db_path = db_path
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not open kit database at {db_path}: {e}") from e
        logger.info("Kit database ready at %s", db_path)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block in one transaction; roll back on any exception."""
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.Error as e:
                logger.error("Database error: %s", e)
                raise PersistenceError(f"Database error: {e}") from e

    # --- profiles / organizations ---

    def get_profile(self, user_id: str) -> Profile | None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT id, organization_id, role, full_name FROM profiles WHERE id = ?",
                (user_id,),
            ).fetchone()
        return Profile(**dict(row)) if row else None

    def _ensure_profile(self, conn: sqlite3.Connection, user_id: str) -> None:
        conn.execute("INSERT OR IGNORE INTO profiles (id) VALUES (?)", (user_id,))

    def create_organization(self, name: str, owner_id: str) -> Organization:
        org = Organization(id=_new_id(), name=name.strip(), invite_code=secrets.token_urlsafe(6))
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO organizations (id, name, invite_code, created_at) VALUES (?, ?, ?, ?)",
                (org.id, org.name, org.invite_code, _now()),
            )
            self._ensure_profile(conn, owner_id)
            conn.execute(
                "UPDATE profiles SET organization_id = ?, role = ? WHERE id = ?",
                (org.id, ADMIN_ROLE, owner_id),
            )
        logger.info("Created organization %s owned by %s", org.id, owner_id)
        return org

    def join_organization(self, invite_code: str, user_id: str) -> Organization:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT id, name, invite_code FROM organizations WHERE invite_code = ?",
                (invite_code.strip(),),
            ).fetchone()
            if row is None:
                raise KitNotFoundError("Invalid invite code")
            self._ensure_profile(conn, user_id)
            conn.execute(
                "UPDATE profiles SET organization_id = ?, role = ? WHERE id = ?",
                (row["id"], MEMBER_ROLE, user_id),
            )
        return Organization(**dict(row))

    # --- kits ---

    def save_kit(
        self,
        org_id: str,
        profile_id: str,
        job: JobDraft,
        competencies: list[Competency],
        questions: list[Question],
        score: KitScore | None = None,
    ) -> str:
        keys = {c.key for c in competencies}
        orphans = [q.text for q in questions if q.competency_key not in keys]
        if orphans:
            raise PersistenceError(
                f"{len(orphans)} question(s) do not belong to any competency of this kit"
            )

        job_id = _new_id()
        with self._transaction() as conn:
            conn.execute(
                """INSERT INTO jobs (id, org_id, profile_id, title, description, status,
                                     kit_score, kit_score_explanation, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    job_id, org_id, profile_id, job.title, job.description,
                    JobStatus.DRAFT.value,
                    score.score if score else None,
                    score.explanation if score else None,
                    _now(),
                ),
            )
            for c_pos, competency in enumerate(competencies):
                competency_id = _new_id()
                conn.execute(
                    "INSERT INTO competencies (id, job_id, name, description, position) VALUES (?, ?, ?, ?, ?)",
                    (competency_id, job_id, competency.name, competency.description, c_pos),
                )
                rows = [
                    (
                        _new_id(), competency_id, q.text, q.category.value,
                        q.explanation, q.rubric_good, q.rubric_bad, q_pos,
                    )
                    for q_pos, q in enumerate(
                        q for q in questions if q.competency_key == competency.key
                    )
                ]
                if rows:
                    conn.executemany(
                        """INSERT INTO questions (id, competency_id, text, category, explanation,
                                                  rubric_good, rubric_bad, position)
                           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                        rows,
                    )
        logger.info(
            "Saved kit %s: %d competencies, %d questions",
            job_id, len(competencies), len(questions),
        )
        return job_id

    def get_kit(self, job_id: str) -> PersistedKit | None:
        with self._transaction() as conn:
            job = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
            if job is None:
                return None
            comp_rows = conn.execute(
                "SELECT id, name, description FROM competencies WHERE job_id = ? ORDER BY position",
                (job_id,),
            ).fetchall()
            question_rows = conn.execute(
                """SELECT q.*, c.name AS competency_name
                   FROM questions q JOIN competencies c ON c.id = q.competency_id
                   WHERE c.job_id = ?
                   ORDER BY c.position, q.position""",
                (job_id,),
            ).fetchall()

        competencies = [
            Competency(key=r["id"], id=r["id"], name=r["name"], description=r["description"])
            for r in comp_rows
        ]
        questions = [
            Question(
                id=r["id"],
                competency_key=r["competency_id"],
                competency_id=r["competency_id"],
                competency_name=r["competency_name"],
                text=r["text"],
                category=QuestionCategory.parse(r["category"]),
                explanation=r["explanation"],
                rubric_good=r["rubric_good"],
                rubric_bad=r["rubric_bad"],
            )
            for r in question_rows
        ]
        return PersistedKit(
            job_id=job["id"],
            org_id=job["org_id"],
            profile_id=job["profile_id"],
            title=job["title"],
            description=job["description"],
            status=JobStatus(job["status"]),
            kit_score=job["kit_score"],
            kit_score_explanation=job["kit_score_explanation"],
            rejection_reason=job["rejection_reason"],
            created_at=job["created_at"],
            submitted_at=job["submitted_at"],
            competencies=competencies,
            questions=questions,
        )

    def list_jobs(
        self,
        org_id: str,
        profile_id: str | None = None,
        status: JobStatus | None = None,
    ) -> list[JobSummary]:
        query = "SELECT * FROM jobs WHERE org_id = ?"
        params: list = [org_id]
        if profile_id is not None:
            query += " AND profile_id = ?"
            params.append(profile_id)
        if status is not None:
            query += " AND status = ?"
            params.append(JobStatus(status).value)
        query += " ORDER BY created_at DESC"
        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._summary(r) for r in rows]

    def delete_job(self, job_id: str) -> None:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM jobs WHERE id = ?", (job_id,))
            if cursor.rowcount == 0:
                raise KitNotFoundError(f"Kit {job_id} not found")
        logger.info("Deleted kit %s", job_id)

    # --- review workflow ---

    def submit_for_review(self, job_id: str) -> JobSummary:
        with self._transaction() as conn:
            row = self._job_row(conn, job_id)
            if row["status"] not in (JobStatus.DRAFT.value, JobStatus.REJECTED.value):
                raise InvalidTransitionError(f"A {row['status']} kit cannot be submitted for review")
            conn.execute(
                """UPDATE jobs SET status = ?, submitted_at = ?, rejection_reason = NULL
                   WHERE id = ?""",
                (JobStatus.PENDING.value, _now(), job_id),
            )
            row = self._job_row(conn, job_id)
        return self._summary(row)

    def review_job(
        self,
        job_id: str,
        reviewer_id: str,
        approve: bool,
        reason: str | None = None,
    ) -> JobSummary:
        with self._transaction() as conn:
            row = self._job_row(conn, job_id)
            reviewer = conn.execute(
                "SELECT organization_id, role FROM profiles WHERE id = ?", (reviewer_id,)
            ).fetchone()
            if (
                reviewer is None
                or reviewer["role"] != ADMIN_ROLE
                or reviewer["organization_id"] != row["org_id"]
            ):
                raise PermissionDeniedError("Only an organization admin can review kits")
            if row["status"] != JobStatus.PENDING.value:
                raise InvalidTransitionError(f"Only pending kits can be reviewed (kit is {row['status']})")

            status = JobStatus.APPROVED if approve else JobStatus.REJECTED
            conn.execute(
                """UPDATE jobs SET status = ?, rejection_reason = ?, reviewed_at = ?, reviewed_by = ?
                   WHERE id = ?""",
                (status.value, None if approve else (reason or ""), _now(), reviewer_id, job_id),
            )
            row = self._job_row(conn, job_id)
        logger.info("Kit %s %s by %s", job_id, status.value, reviewer_id)
        return self._summary(row)

    @staticmethod
    def _job_row(conn: sqlite3.Connection, job_id: str) -> sqlite3.Row:
        row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        if row is None:
            raise KitNotFoundError(f"Kit {job_id} not found")
        return row

    @staticmethod
    def _summary(row: sqlite3.Row) -> JobSummary:
        return JobSummary(
            job_id=row["id"],
            title=row["title"],
            status=JobStatus(row["status"]),
            profile_id=row["profile_id"],
            kit_score=row["kit_score"],
            rejection_reason=row["rejection_reason"],
            created_at=row["created_at"],
            submitted_at=row["submitted_at"],
        )
