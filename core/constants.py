"""
하드코딩 상수 - 변경될 일이 거의 없는 고정값

중요: 경로는 반드시 pathlib.Path 사용 (Windows/Linux 크로스 플랫폼)
"""

from pathlib import Path

from core.types import Currency


# 프로젝트 루트 (이 파일 기준 2단계 상위: core/constants.py → 루트)
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent


class Defaults:
    """기본값 상수"""

    # 페이지 조회 (원격 저장소 제한: 한 번에 최대 500건)
    PAGE_SIZE: int = 500
    MAX_PAGE_SIZE: int = 500
    MAX_PAGES: int = 50  # 50 * 500 = 25k 안전 한도

    # 레거시 마이그레이션 배치 크기 (500 제한보다 여유 있게)
    MIGRATION_CHUNK_SIZE: int = 450

    # 감사 이력 최대 수정 횟수
    MAX_AUDIT_EDITS: int = 5

    # 쓰기 확인 타임아웃 (초)
    WRITE_CONFIRM_TIMEOUT_SEC: float = 10.0

    # 같은 Movement 재수정 쿨다운 (초)
    EDIT_COOLDOWN_SEC: float = 3.0

    # 코스타리카 표준시 (UTC-06:00, DST 없음)
    TIMEZONE_OFFSET_HOURS: int = -6

    WEB_HOST: str = "127.0.0.1"
    WEB_PORT: int = 8000

    LOG_LEVEL: str = "INFO"


class Paths:
    """프로젝트 경로 상수 (pathlib 사용 - OS 독립적)"""

    # 디렉토리
    CONFIG_DIR: Path = PROJECT_ROOT / "config"
    DATA_DIR: Path = PROJECT_ROOT / "data"
    LOGS_DIR: Path = PROJECT_ROOT / "logs"
    ENGINE_LOGS_DIR: Path = LOGS_DIR / "engine"
    WEB_LOGS_DIR: Path = LOGS_DIR / "web"

    # 설정 파일
    SETTINGS_FILE: Path = CONFIG_DIR / "settings.yaml"

    # DB 파일
    DEFAULT_DB: Path = DATA_DIR / "fondo.db"


class SystemIdentity:
    """마감 조정 Movement의 시스템 식별값

    조정 Movement는 이 값으로 생성되며 일반 사용자가 수정/삭제할 수 없음.
    """

    MANAGER: str = "SISTEMA"
    PROVIDER_CODE: str = "AJUSTE_CIERRE"
    INFORMATIONAL_TYPE: str = "CIERRE SIN DIFERENCIAS"


class MovementTypes:
    """Movement 유형 (거래처 분류용)"""

    INCOME: tuple[str, ...] = ("VENTAS", "OTROS INGRESOS")
    EXPENSE: tuple[str, ...] = (
        "SALARIOS",
        "TELEFONOS",
        "CARGAS SOCIALES",
        "AGUINALDOS",
        "VACACIONES",
        "POLIZA RIESGOS DE TRABAJO",
        "PAGO TIMBRE Y EDUCACION",
        "PAGO IMPUESTOS A SOCIEDADES",
        "PATENTES MUNICIPALES",
        "ALQUILER LOCAL",
        "ELECTRICIDAD",
        "AGUA",
        "INTERNET",
        "MANTENIMIENTO INSTALACIONES",
        "PAPELERIA Y UTILES",
        "ASEO Y LIMPIEZA",
        "REDES SOCIALES",
        "MATERIALES DE EMPAQUE",
        "CONTROL PLAGAS",
        "MONITOREO DE ALARMAS",
        "FACTURA ELECTRONICA",
        "GASTOS VARIOS",
        "TRANSPORTE",
        "SERVICIOS PROFECIONALES",
        "MANTENIMIENTO MOBILIARIO Y EQUIPO",
    )
    OUTFLOW: tuple[str, ...] = (
        "EGRESOS VARIOS",
        "PAGO TIEMPOS",
        "PAGO BANCA",
        "COMPRA INVENTARIO",
        "COMPRA ACTIVOS",
        "PAGO IMPUESTO RENTA",
        "PAGO IMPUESTO IVA",
        "RETIRO EFECTIVO",
    )

    # 마감 조정에 사용되는 유형
    ADJUSTMENT_INCOME: str = "OTROS INGRESOS"
    ADJUSTMENT_EXPENSE: str = "GASTOS VARIOS"


# 권종 (현금 실사용)
DENOMINATIONS: dict[Currency, tuple[int, ...]] = {
    Currency.CRC: (20000, 10000, 5000, 2000, 1000, 500, 100, 50, 25),
    Currency.USD: (100, 50, 20, 10, 5, 1),
}
