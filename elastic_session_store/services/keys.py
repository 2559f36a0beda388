class KeyCodec:
    """Maps logical session ids to Elasticsearch document ids.

    Keys are ``prefix + sid`` with no escaping, so tenants sharing one index
    must pick prefixes that keep their ids apart.
    """

    def __init__(self, prefix: str = ""):
        self.prefix = prefix

    def encode(self, sid: str) -> str:
        return f"{self.prefix}{sid}"

    def decode(self, storage_key: str) -> str:
        if not self.owns(storage_key):
            raise ValueError(f"Key {storage_key!r} does not carry prefix {self.prefix!r}")
        return storage_key[len(self.prefix):]

    def owns(self, storage_key: str) -> bool:
        return storage_key.startswith(self.prefix)
