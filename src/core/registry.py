"""
Fingerprint Registry: (source_hash, variant_seed) 결합 지문 → request_id.

규칙:
- append-only, 하나의 지문은 정확히 하나의 요청에만 매핑
- 동시성 제어는 저장소의 uniqueness 제약만 사용 (프로세스 내 락 없음)
- 동일 지문 재등록 → RegisterResult(duplicate=True) (경쟁에서 진 요청, 정상 상황)
- 저장소 장애 → RegistryError (fail-open 여부는 호출자가 결정)
"""

import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, String, create_engine, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from src.core.hashing import compute_combined_hash
from src.domain.errors import RegistryError
from src.domain.schemas import DuplicateCheckResult, RegisterResult

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///registry.db"


# =============================================================================
# ORM
# =============================================================================


class Base(DeclarativeBase):
    pass


class HashRegistryRecord(Base):
    """hash_registry 테이블."""
    __tablename__ = "hash_registry"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    combined_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    request_id: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )


# =============================================================================
# Store Interface
# =============================================================================


class FingerprintStore(ABC):
    """
    지문 저장소 추상 인터페이스.

    구현체는 uniqueness를 저장소 수준에서 보장해야 함.
    """

    @abstractmethod
    def check_duplicate(self, source_hash: str, variant_seed: str) -> DuplicateCheckResult:
        """
        결합 지문 조회 (읽기 전용).

        Raises:
            RegistryError: 저장소 장애
        """
        ...

    @abstractmethod
    def register(self, source_hash: str, variant_seed: str, request_id: str) -> RegisterResult:
        """
        결합 지문 등록.

        Raises:
            RegistryError: 저장소 장애 (uniqueness 위반 제외)
        """
        ...


class SqlFingerprintRegistry(FingerprintStore):
    """
    SQLAlchemy 기반 지문 레지스트리.

    Usage:
        registry = SqlFingerprintRegistry("sqlite:///registry.db")
        if not registry.check_duplicate(source_hash, seed).is_duplicate:
            registry.register(source_hash, seed, request_id)
    """

    def __init__(self, database_url: str = DEFAULT_DATABASE_URL, echo: bool = False):
        """
        Args:
            database_url: SQLAlchemy URL (sqlite://, postgresql:// 등)
            echo: SQL 로그 출력 여부
        """
        self.database_url = database_url

        engine_kwargs: dict = {"echo": echo}
        if database_url.startswith("sqlite"):
            # 호출은 워커 스레드에서 실행됨
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # 인메모리 DB는 연결 간 공유 필요
            engine_kwargs["poolclass"] = StaticPool

        self.engine = create_engine(database_url, **engine_kwargs)
        self._session_factory = sessionmaker(self.engine, expire_on_commit=False)

    @classmethod
    def from_config(cls, config: dict) -> "SqlFingerprintRegistry":
        registry_config = config.get("registry", {}) or {}
        return cls(
            database_url=registry_config.get("database_url", DEFAULT_DATABASE_URL),
            echo=registry_config.get("echo", False),
        )

    def create_schema(self) -> None:
        """테이블 생성 (없을 때만)."""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise RegistryError("create_schema", str(e)) from e

    def _session(self) -> Session:
        return self._session_factory()

    def check_duplicate(self, source_hash: str, variant_seed: str) -> DuplicateCheckResult:
        combined_hash = compute_combined_hash(source_hash, variant_seed)
        stmt = select(HashRegistryRecord.request_id).where(
            HashRegistryRecord.combined_hash == combined_hash
        )

        try:
            with self._session() as session:
                existing_id = session.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RegistryError("check_duplicate", str(e)) from e

        if existing_id is None:
            return DuplicateCheckResult(is_duplicate=False)
        return DuplicateCheckResult(is_duplicate=True, existing_id=existing_id)

    def register(self, source_hash: str, variant_seed: str, request_id: str) -> RegisterResult:
        combined_hash = compute_combined_hash(source_hash, variant_seed)
        record = HashRegistryRecord(combined_hash=combined_hash, request_id=request_id)

        try:
            with self._session() as session, session.begin():
                session.add(record)
        except IntegrityError:
            logger.info(f"Fingerprint already registered: {combined_hash[:16]}... ({request_id})")
            return RegisterResult(
                success=False,
                duplicate=True,
                error="combined_hash already registered",
            )
        except SQLAlchemyError as e:
            raise RegistryError("register", str(e)) from e

        return RegisterResult(success=True)

    def count(self) -> int:
        """등록된 지문 수."""
        try:
            with self._session() as session:
                return session.execute(
                    select(func.count()).select_from(HashRegistryRecord)
                ).scalar_one()
        except SQLAlchemyError as e:
            raise RegistryError("count", str(e)) from e
