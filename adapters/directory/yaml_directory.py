"""
YAML 거래처 디렉토리

providers.yaml에 정의된 회사별 거래처 목록을 읽어 IProviderDirectory로 제공.
읽기 전용이며 거래처 등록/수정은 이 파일을 직접 관리한다.

형식:
```yaml
Delifood:
  - code: P001
    name: Ventas Mostrador
    type: VENTAS
  - code: P002
    name: Distribuidora Central
    type: COMPRA INVENTARIO
    notification_email: pagos@distribuidora.cr
```
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from adapters.models import ProviderEntry

logger = logging.getLogger(__name__)


class DirectoryLoadError(Exception):
    """거래처 디렉토리 로드 실패 예외"""

    pass


def parse_providers(data: Any) -> dict[tuple[str, str], ProviderEntry]:
    """YAML 데이터 → (회사, 코드) 키 거래처 사전

    code가 없는 항목은 건너뛰고, 같은 코드가 반복되면 마지막 항목을 사용한다.

    Raises:
        DirectoryLoadError: 최상위 또는 회사 항목 형식 오류
    """
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise DirectoryLoadError("providers 파일 최상위는 회사별 매핑이어야 합니다")

    providers: dict[tuple[str, str], ProviderEntry] = {}
    for company, entries in data.items():
        if not isinstance(entries, list):
            raise DirectoryLoadError(f"'{company}' 거래처 목록은 리스트여야 합니다")

        for item in entries:
            if not isinstance(item, dict):
                continue
            code = str(item.get("code") or "").strip()
            if not code:
                logger.warning(f"Provider without code skipped: {company}")
                continue
            entry = ProviderEntry(
                code=code,
                name=str(item.get("name") or code).strip(),
                type=str(item["type"]).strip() if item.get("type") else None,
                notification_email=str(item["notification_email"]).strip()
                if item.get("notification_email")
                else None,
            )
            providers[(str(company), code)] = entry

    return providers


class YamlProviderDirectory:
    """파일 기반 거래처 디렉토리

    Args:
        providers: (회사, 코드) → ProviderEntry

    사용 예시:
    ```python
    directory = YamlProviderDirectory.load(Path("config/providers.yaml"))
    provider = await directory.get_provider("Delifood", "P001")
    ```
    """

    def __init__(self, providers: dict[tuple[str, str], ProviderEntry]):
        self._providers = providers

    @classmethod
    def load(cls, path: Path) -> "YamlProviderDirectory":
        """파일에서 디렉토리 생성

        Raises:
            DirectoryLoadError: 파일이 없거나 형식이 잘못된 경우
        """
        if not path.exists():
            raise DirectoryLoadError(f"providers 파일을 찾을 수 없습니다: {path}")

        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise DirectoryLoadError(f"providers 파일 파싱 실패: {e}") from e

        providers = parse_providers(data)
        logger.info(f"Provider directory loaded: {path} ({len(providers)} providers)")
        return cls(providers)

    def __len__(self) -> int:
        return len(self._providers)

    async def get_provider(self, company: str, code: str) -> ProviderEntry | None:
        return self._providers.get((company, code))
