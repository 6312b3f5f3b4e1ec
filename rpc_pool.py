class EndpointPool:
    """Ordered RPC endpoints with a round-robin cursor used for failover."""

    def __init__(self, endpoints):
        self._endpoints = tuple(endpoints)
        if not self._endpoints:
            raise ValueError("Endpoint pool needs at least one RPC URL.")
        self._index = 0

    @property
    def index(self):
        return self._index

    def __len__(self):
        return len(self._endpoints)

    def current(self):
        return self._endpoints[self._index]

    def advance(self):
        self._index = (self._index + 1) % len(self._endpoints)
        return self.current()
