"""
거래처 디렉토리 어댑터

providers.yaml 기반 읽기 전용 디렉토리.
IProviderDirectory Protocol 준수.
"""

from adapters.directory.yaml_directory import DirectoryLoadError, YamlProviderDirectory

__all__ = [
    "DirectoryLoadError",
    "YamlProviderDirectory",
]
