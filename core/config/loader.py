"""
설정 로더

settings.yaml 로드 및 Ledger/메일/웹 설정 생성
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from core.constants import Defaults, Paths, PROJECT_ROOT


@dataclass(frozen=True)
class LedgerSettings:
    """Ledger 동작 설정

    불변 데이터 구조로 설정 변경 방지
    """

    page_size: int = Defaults.PAGE_SIZE
    max_pages: int = Defaults.MAX_PAGES
    migration_chunk_size: int = Defaults.MIGRATION_CHUNK_SIZE
    max_audit_edits: int = Defaults.MAX_AUDIT_EDITS
    write_confirm_timeout_sec: float = Defaults.WRITE_CONFIRM_TIMEOUT_SEC
    edit_cooldown_sec: float = Defaults.EDIT_COOLDOWN_SEC
    timezone_offset_hours: int = Defaults.TIMEZONE_OFFSET_HOURS


@dataclass(frozen=True)
class MailerSettings:
    """메일 릴레이 설정 (enabled가 False면 알림 생략)"""

    enabled: bool = False
    relay_url: str = ""
    api_key: str = ""
    sender: str = ""
    closing_recipients: tuple[str, ...] = ()
    timeout_sec: float = 10.0


@dataclass(frozen=True)
class DirectorySettings:
    """거래처 디렉토리 파일 설정 (path가 None이면 디렉토리 없이 동작)"""

    path: Path | None = None


@dataclass(frozen=True)
class WebSettings:
    """웹 서버 설정"""

    host: str = Defaults.WEB_HOST
    port: int = Defaults.WEB_PORT


@dataclass(frozen=True)
class AppSettings:
    """settings.yaml 전체"""

    db_path: Path
    log_level: str = Defaults.LOG_LEVEL
    ledger: LedgerSettings = field(default_factory=LedgerSettings)
    mailer: MailerSettings = field(default_factory=MailerSettings)
    web: WebSettings = field(default_factory=WebSettings)
    directory: DirectorySettings = field(default_factory=DirectorySettings)


class SettingsLoadError(Exception):
    """Settings 로드 실패 예외"""

    pass


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise SettingsLoadError(f"settings.yaml의 '{name}' 섹션은 매핑이어야 합니다")
    return value


def _number(section: dict[str, Any], key: str, default: float, name: str, cast: type = int) -> Any:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SettingsLoadError(f"settings.yaml의 {name}.{key} 값이 숫자가 아닙니다: {value!r}")
    return cast(value)


def _parse_ledger(section: dict[str, Any]) -> LedgerSettings:
    page_size = _number(section, "page_size", Defaults.PAGE_SIZE, "ledger")
    if not 1 <= page_size <= Defaults.MAX_PAGE_SIZE:
        raise SettingsLoadError(
            f"ledger.page_size는 1..{Defaults.MAX_PAGE_SIZE} 범위여야 합니다: {page_size}"
        )

    settings = LedgerSettings(
        page_size=page_size,
        max_pages=_number(section, "max_pages", Defaults.MAX_PAGES, "ledger"),
        migration_chunk_size=_number(
            section, "migration_chunk_size", Defaults.MIGRATION_CHUNK_SIZE, "ledger"
        ),
        max_audit_edits=_number(section, "max_audit_edits", Defaults.MAX_AUDIT_EDITS, "ledger"),
        write_confirm_timeout_sec=_number(
            section, "write_confirm_timeout_sec", Defaults.WRITE_CONFIRM_TIMEOUT_SEC, "ledger", float
        ),
        edit_cooldown_sec=_number(
            section, "edit_cooldown_sec", Defaults.EDIT_COOLDOWN_SEC, "ledger", float
        ),
        timezone_offset_hours=_number(
            section, "timezone_offset_hours", Defaults.TIMEZONE_OFFSET_HOURS, "ledger"
        ),
    )

    for key in ("max_pages", "migration_chunk_size", "max_audit_edits"):
        if getattr(settings, key) < 1:
            raise SettingsLoadError(f"ledger.{key}는 1 이상이어야 합니다")
    if settings.write_confirm_timeout_sec <= 0:
        raise SettingsLoadError("ledger.write_confirm_timeout_sec는 0보다 커야 합니다")

    return settings


def _parse_mailer(section: dict[str, Any]) -> MailerSettings:
    enabled = bool(section.get("enabled", False))
    relay_url = str(section.get("relay_url") or "")
    if enabled and not relay_url:
        raise SettingsLoadError("mailer.enabled가 true이면 'relay_url'이 필요합니다")

    recipients = section.get("closing_recipients") or []
    if isinstance(recipients, str):
        recipients = [recipients]
    if not isinstance(recipients, list):
        raise SettingsLoadError("mailer.closing_recipients는 목록이어야 합니다")

    return MailerSettings(
        enabled=enabled,
        relay_url=relay_url,
        api_key=str(section.get("api_key") or ""),
        sender=str(section.get("sender") or ""),
        closing_recipients=tuple(str(r).strip() for r in recipients if str(r).strip()),
        timeout_sec=_number(section, "timeout_sec", 10.0, "mailer", float),
    )


def _parse_directory(section: dict[str, Any]) -> DirectorySettings:
    raw = section.get("path")
    if not raw:
        return DirectorySettings()
    path = Path(str(raw))
    if not path.is_absolute():
        path = PROJECT_ROOT / path
    return DirectorySettings(path=path)


def load_settings(path: Path | None = None) -> AppSettings:
    """settings.yaml 파일 로드

    Args:
        path: settings.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        AppSettings 인스턴스

    Raises:
        SettingsLoadError: 파일이 없거나 형식이 잘못된 경우
    """
    if path is None:
        path = Paths.SETTINGS_FILE

    if not path.exists():
        raise SettingsLoadError(f"settings.yaml 파일을 찾을 수 없습니다: {path}")

    try:
        content = path.read_text(encoding="utf-8")
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SettingsLoadError(f"settings.yaml 파싱 실패: {e}") from e

    if data is None:
        raise SettingsLoadError("settings.yaml이 비어 있습니다")
    if not isinstance(data, dict):
        raise SettingsLoadError("settings.yaml 최상위는 매핑이어야 합니다")

    database = _section(data, "database")
    db_path = Path(database.get("path") or Paths.DEFAULT_DB)
    if not db_path.is_absolute():
        db_path = PROJECT_ROOT / db_path

    web = _section(data, "web")
    logging_section = _section(data, "logging")

    return AppSettings(
        db_path=db_path,
        log_level=str(logging_section.get("level", Defaults.LOG_LEVEL)).upper(),
        ledger=_parse_ledger(_section(data, "ledger")),
        mailer=_parse_mailer(_section(data, "mailer")),
        web=WebSettings(
            host=str(web.get("host", Defaults.WEB_HOST)),
            port=_number(web, "port", Defaults.WEB_PORT, "web"),
        ),
        directory=_parse_directory(_section(data, "directory")),
    )


class Settings:
    """애플리케이션 설정 (싱글턴 패턴)

    settings.yaml을 로드하고 관련 설정을 제공
    """

    _instance: "Settings | None" = None
    _settings: AppSettings | None = None

    def __new__(cls, settings_path: Path | None = None) -> "Settings":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, settings_path: Path | None = None) -> None:
        if self._settings is None:
            type(self)._settings = load_settings(settings_path)

    @property
    def db_path(self) -> Path:
        """DB 파일 경로"""
        assert self._settings is not None
        return self._settings.db_path

    @property
    def log_level(self) -> str:
        assert self._settings is not None
        return self._settings.log_level

    @property
    def ledger(self) -> LedgerSettings:
        """Ledger 동작 설정"""
        assert self._settings is not None
        return self._settings.ledger

    @property
    def mailer(self) -> MailerSettings:
        """메일 릴레이 설정"""
        assert self._settings is not None
        return self._settings.mailer

    @property
    def web(self) -> WebSettings:
        """웹 서버 설정"""
        assert self._settings is not None
        return self._settings.web

    @property
    def directory(self) -> DirectorySettings:
        """거래처 디렉토리 설정"""
        assert self._settings is not None
        return self._settings.directory

    @classmethod
    def reset(cls) -> None:
        """싱글턴 인스턴스 초기화 (테스트용)"""
        cls._instance = None
        cls._settings = None


def get_settings(settings_path: Path | None = None) -> Settings:
    """Settings 인스턴스 반환

    Args:
        settings_path: settings.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        Settings 싱글턴 인스턴스
    """
    return Settings(settings_path)
