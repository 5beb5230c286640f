__all__ = ("RespCacheError", "ConfigError", "StoreError", "StoreUnavailable", "MalformedEntry")


class RespCacheError(Exception): ...


class ConfigError(RespCacheError, ValueError): ...


class StoreError(RespCacheError): ...


class StoreUnavailable(StoreError): ...


class MalformedEntry(StoreError): ...
