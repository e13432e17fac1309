"""
Mock 거래처 디렉토리 / 사용자 식별

IProviderDirectory, IIdentityProvider Protocol 준수.
"""

from adapters.models import Actor, ProviderEntry


class MockProviderDirectory:
    """메모리 기반 거래처 디렉토리

    사용 예시:
    ```python
    directory = MockProviderDirectory()
    directory.add("Delifood", ProviderEntry(code="P001", name="Coca Cola", type="COMPRA INVENTARIO"))
    ```
    """

    def __init__(self, providers: dict[str, list[ProviderEntry]] | None = None):
        self._providers: dict[tuple[str, str], ProviderEntry] = {}
        self.lookups: list[tuple[str, str]] = []
        for company, entries in (providers or {}).items():
            for entry in entries:
                self.add(company, entry)

    def add(self, company: str, entry: ProviderEntry) -> None:
        self._providers[(company, entry.code)] = entry

    async def get_provider(self, company: str, code: str) -> ProviderEntry | None:
        self.lookups.append((company, code))
        return self._providers.get((company, code))


class StaticIdentityProvider:
    """고정 Actor 반환 (테스트/CLI용)"""

    def __init__(self, actor: Actor | None = None):
        self.actor = actor or Actor(name="operador")

    def current_actor(self) -> Actor:
        return self.actor
