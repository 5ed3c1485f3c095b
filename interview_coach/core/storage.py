from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime

from sqlalchemy import create_engine, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session as DbSession
from sqlalchemy.orm import selectinload, sessionmaker
from sqlalchemy.pool import StaticPool

from .constants import DEFAULT_DATABASE_URL, PASS_SCORE_THRESHOLD
from .database_models import (
    AnswerTable,
    Base,
    InterviewTable,
    QuestionTable,
    UserProfileTable,
    enable_sqlite_foreign_keys,
)
from .logging import span
from .models import (
    Answer,
    Difficulty,
    Evaluation,
    Interview,
    InterviewResults,
    InterviewStatus,
    Question,
    Role,
    UserProfile,
)
from .storage_interface import (
    ConcurrencyConflictError,
    DuplicateAnswerError,
    StorageError,
    StorageInterface,
)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands datetimes back naive
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


class DatabaseManager(StorageInterface):
    """SQLAlchemy-backed interview store.

    Writes are `UPDATE ... WHERE version = :expected` followed by the child
    rows, all in one transaction. A writer that lost the race sees rowcount 0
    and gets ConcurrencyConflictError; unique constraints on
    (interview_id, question_id) catch anything that slips past in another
    process.
    """

    def __init__(self, database_url: str = DEFAULT_DATABASE_URL):
        self.database_url = database_url

        engine_kwargs: dict = {"echo": False, "pool_pre_ping": True}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_recycle"] = 3600

        self.engine = create_engine(database_url, **engine_kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        enable_sqlite_foreign_keys(self.engine)
        Base.metadata.create_all(bind=self.engine)

    @property
    def _db_engine(self) -> str:
        return self.engine.dialect.name

    # -- conversion -------------------------------------------------------

    def _build_interview_from_table(self, row: InterviewTable) -> Interview:
        questions = [
            Question(
                id=q.question_id,
                text=q.text,
                category=q.category,
                difficulty=Difficulty(q.difficulty),
                expected_duration_seconds=q.expected_duration_seconds,
            )
            for q in sorted(row.questions, key=lambda q: q.order_index)
        ]
        answers = [
            Answer(
                question_id=a.question_id,
                question_text=a.question_text,
                text=a.text,
                time_spent_seconds=a.time_spent_seconds,
                evaluation=Evaluation(
                    score=a.score,
                    feedback=a.feedback,
                    strengths=a.strengths or [],
                    improvements=a.improvements or [],
                ),
                submitted_at=_as_utc(a.submitted_at),
            )
            for a in sorted(row.answers, key=lambda a: a.order_index)
        ]
        return Interview(
            id=row.id,
            owner_id=row.owner_id,
            role=Role(row.role),
            experience_level=row.experience_level,
            status=InterviewStatus(row.status),
            total_questions=row.total_questions,
            seconds_per_question=row.seconds_per_question,
            estimated_duration_minutes=row.estimated_duration_minutes,
            questions=questions,
            answers=answers,
            results=InterviewResults.model_validate(row.results) if row.results else None,
            started_at=_as_utc(row.started_at),
            completed_at=_as_utc(row.completed_at),
            duration_seconds=row.duration_seconds,
            version=row.version,
        )

    def _fetch_interview_with_relations(self, db: DbSession, interview_id: str) -> InterviewTable | None:
        query = (
            select(InterviewTable)
            .options(selectinload(InterviewTable.questions), selectinload(InterviewTable.answers))
            .where(InterviewTable.id == interview_id)
        )
        return db.execute(query).scalar_one_or_none()

    # -- write helpers ----------------------------------------------------

    @contextmanager
    def _transaction(self, interview_id: str, expected_version: int, operation: str) -> Iterator[DbSession]:
        with self.SessionLocal() as db:
            try:
                yield db
                db.commit()
            except StorageError:
                db.rollback()
                raise
            except IntegrityError as e:
                db.rollback()
                raise ConcurrencyConflictError(interview_id, expected_version) from e
            except SQLAlchemyError as e:
                db.rollback()
                raise StorageError(f"Failed to {operation} for interview {interview_id}: {str(e)}") from e

    def _claim_version(self, db: DbSession, interview_id: str, expected_version: int, **values) -> None:
        """Bump the version if it is still `expected_version`, applying `values` in the same statement."""
        result = db.execute(
            update(InterviewTable)
            .where(InterviewTable.id == interview_id, InterviewTable.version == expected_version)
            .values(version=InterviewTable.version + 1, **values)
        )
        if result.rowcount != 1:
            if db.get(InterviewTable, interview_id) is None:
                raise StorageError(f"Interview {interview_id} not found")
            raise ConcurrencyConflictError(interview_id, expected_version)

    def _reload(self, interview_id: str) -> Interview:
        interview = self.load_interview(interview_id)
        if interview is None:
            raise StorageError(f"Interview {interview_id} disappeared after write")
        return interview

    # -- StorageInterface -------------------------------------------------

    def create_interview(self, interview: Interview) -> str:
        with span(
            "db.create_interview",
            component="db",
            operation="create_interview",
            interview_id=interview.id,
            questions=len(interview.questions),
            db_engine=self._db_engine,
        ):
            with self._transaction(interview.id, interview.version, "create interview") as db:
                row = InterviewTable(
                    id=interview.id,
                    owner_id=interview.owner_id,
                    role=interview.role.value,
                    experience_level=interview.experience_level,
                    status=interview.status.value,
                    total_questions=interview.total_questions,
                    seconds_per_question=interview.seconds_per_question,
                    estimated_duration_minutes=interview.estimated_duration_minutes,
                    started_at=interview.started_at,
                    duration_seconds=interview.duration_seconds,
                    version=interview.version,
                )
                db.add(row)
                for i, question in enumerate(interview.questions):
                    db.add(self._question_row(interview.id, question, i))
            return interview.id

    def _question_row(self, interview_id: str, question: Question, order_index: int) -> QuestionTable:
        return QuestionTable(
            interview_id=interview_id,
            question_id=question.id,
            text=question.text,
            category=question.category,
            difficulty=question.difficulty.value,
            expected_duration_seconds=question.expected_duration_seconds,
            order_index=order_index,
        )

    def load_interview(self, interview_id: str) -> Interview | None:
        with span(
            "db.load_interview",
            component="db",
            operation="load_interview",
            interview_id=interview_id,
            db_engine=self._db_engine,
        ):
            with self.SessionLocal() as db:
                try:
                    row = self._fetch_interview_with_relations(db, interview_id)
                    if not row:
                        return None
                    return self._build_interview_from_table(row)
                except SQLAlchemyError as e:
                    raise StorageError(f"Failed to load interview {interview_id}: {str(e)}") from e

    def append_question(self, interview_id: str, question: Question, expected_version: int) -> Interview:
        with span(
            "db.append_question",
            component="db",
            operation="append_question",
            interview_id=interview_id,
            question_id=question.id,
            expected_version=expected_version,
            db_engine=self._db_engine,
        ):
            with self._transaction(interview_id, expected_version, "append question") as db:
                self._claim_version(db, interview_id, expected_version)
                row = db.get(InterviewTable, interview_id)
                count = db.scalar(
                    select(func.count()).select_from(QuestionTable).where(QuestionTable.interview_id == interview_id)
                )
                if count >= row.total_questions:
                    raise StorageError(f"Interview {interview_id} already has {row.total_questions} questions")
                db.add(self._question_row(interview_id, question, count))
            return self._reload(interview_id)

    def append_answer(self, interview_id: str, answer: Answer, expected_version: int) -> Interview:
        with span(
            "db.append_answer",
            component="db",
            operation="append_answer",
            interview_id=interview_id,
            question_id=answer.question_id,
            expected_version=expected_version,
            db_engine=self._db_engine,
        ):
            with self._transaction(interview_id, expected_version, "append answer") as db:
                self._claim_version(db, interview_id, expected_version)
                existing = db.scalar(
                    select(func.count())
                    .select_from(AnswerTable)
                    .where(AnswerTable.interview_id == interview_id, AnswerTable.question_id == answer.question_id)
                )
                if existing:
                    raise DuplicateAnswerError(interview_id, answer.question_id)
                count = db.scalar(
                    select(func.count()).select_from(AnswerTable).where(AnswerTable.interview_id == interview_id)
                )
                db.add(
                    AnswerTable(
                        interview_id=interview_id,
                        question_id=answer.question_id,
                        question_text=answer.question_text,
                        text=answer.text,
                        time_spent_seconds=answer.time_spent_seconds,
                        score=answer.evaluation.score,
                        feedback=answer.evaluation.feedback,
                        strengths=list(answer.evaluation.strengths),
                        improvements=list(answer.evaluation.improvements),
                        submitted_at=answer.submitted_at,
                        order_index=count,
                    )
                )
            return self._reload(interview_id)

    def finalize_interview(
        self,
        interview_id: str,
        results: InterviewResults,
        completed_at: datetime,
        duration_seconds: int,
        expected_version: int,
    ) -> Interview:
        with span(
            "db.finalize_interview",
            component="db",
            operation="finalize_interview",
            interview_id=interview_id,
            expected_version=expected_version,
            overall_score=results.overall_score_percent,
            db_engine=self._db_engine,
        ):
            with self._transaction(interview_id, expected_version, "finalize interview") as db:
                self._claim_version(
                    db,
                    interview_id,
                    expected_version,
                    status=InterviewStatus.COMPLETED.value,
                    results=results.model_dump(mode="json"),
                    overall_score=results.overall_score_percent,
                    completed_at=completed_at,
                    duration_seconds=duration_seconds,
                )
                owner_id = db.get(InterviewTable, interview_id).owner_id
                self._add_to_profile(db, owner_id, results.overall_score_percent, duration_seconds)
            return self._reload(interview_id)

    def _ensure_profile(self, db: DbSession, owner_id: str, now: datetime) -> None:
        """Create an empty profile row unless one exists, without failing when another writer creates it first."""
        values = {
            "owner_id": owner_id,
            "total_interviews": 0,
            "total_score": 0,
            "total_practice_time": 0,
            "updated_at": now,
        }
        dialect_insert = {"sqlite": sqlite.insert, "postgresql": postgresql.insert}.get(self._db_engine)
        if dialect_insert is not None:
            db.execute(dialect_insert(UserProfileTable).values(**values).on_conflict_do_nothing())
            return
        # Without an upsert a racing first insert still surfaces as a version conflict
        if db.get(UserProfileTable, owner_id) is None:
            db.add(UserProfileTable(**values))
            db.flush()

    def _add_to_profile(self, db: DbSession, owner_id: str, score: int, duration_seconds: int) -> None:
        now = datetime.now(UTC)
        self._ensure_profile(db, owner_id, now)
        db.execute(
            update(UserProfileTable)
            .where(UserProfileTable.owner_id == owner_id)
            .values(
                total_interviews=UserProfileTable.total_interviews + 1,
                total_score=UserProfileTable.total_score + score,
                total_practice_time=UserProfileTable.total_practice_time + duration_seconds,
                updated_at=now,
            )
        )

    def mark_abandoned(self, interview_id: str, expected_version: int) -> Interview:
        with span(
            "db.mark_abandoned",
            component="db",
            operation="mark_abandoned",
            interview_id=interview_id,
            expected_version=expected_version,
            db_engine=self._db_engine,
        ):
            with self._transaction(interview_id, expected_version, "abandon interview") as db:
                self._claim_version(db, interview_id, expected_version, status=InterviewStatus.ABANDONED.value)
            return self._reload(interview_id)

    def list_interviews(
        self,
        owner_id: str,
        statuses: list[InterviewStatus] | None = None,
        passed_only: bool = False,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Interview], int]:
        with span(
            "db.list_interviews",
            component="db",
            operation="list_interviews",
            owner_id=owner_id,
            offset=offset,
            limit=limit,
            db_engine=self._db_engine,
        ):
            conditions = [InterviewTable.owner_id == owner_id]
            if statuses is not None:
                conditions.append(InterviewTable.status.in_([s.value for s in statuses]))
            if passed_only:
                conditions.append(InterviewTable.status == InterviewStatus.COMPLETED.value)
                conditions.append(InterviewTable.overall_score >= PASS_SCORE_THRESHOLD)

            with self.SessionLocal() as db:
                try:
                    total = db.scalar(select(func.count()).select_from(InterviewTable).where(*conditions))
                    query = (
                        select(InterviewTable)
                        .options(selectinload(InterviewTable.questions), selectinload(InterviewTable.answers))
                        .where(*conditions)
                        .order_by(
                            InterviewTable.completed_at.is_(None),
                            InterviewTable.completed_at.desc(),
                            InterviewTable.started_at.desc(),
                        )
                        .offset(offset)
                        .limit(limit)
                    )
                    rows = db.execute(query).scalars().all()
                    return [self._build_interview_from_table(r) for r in rows], total
                except SQLAlchemyError as e:
                    raise StorageError(f"Failed to list interviews: {str(e)}") from e

    def list_completed_interviews(self, owner_id: str | None = None) -> list[Interview]:
        with span(
            "db.list_completed_interviews",
            component="db",
            operation="list_completed_interviews",
            owner_id=owner_id,
            db_engine=self._db_engine,
        ):
            query = (
                select(InterviewTable)
                .options(selectinload(InterviewTable.questions), selectinload(InterviewTable.answers))
                .where(InterviewTable.status == InterviewStatus.COMPLETED.value)
            )
            if owner_id is not None:
                query = query.where(InterviewTable.owner_id == owner_id)

            with self.SessionLocal() as db:
                try:
                    rows = db.execute(query).scalars().all()
                    return [self._build_interview_from_table(r) for r in rows]
                except SQLAlchemyError as e:
                    raise StorageError(f"Failed to list completed interviews: {str(e)}") from e

    def get_user_profile(self, owner_id: str) -> UserProfile | None:
        with self.SessionLocal() as db:
            try:
                row = db.get(UserProfileTable, owner_id)
                if row is None:
                    return None
                return UserProfile(
                    owner_id=row.owner_id,
                    total_interviews=row.total_interviews,
                    total_score=row.total_score,
                    total_practice_time=row.total_practice_time,
                    updated_at=_as_utc(row.updated_at),
                )
            except SQLAlchemyError as e:
                raise StorageError(f"Failed to load profile for {owner_id}: {str(e)}") from e
