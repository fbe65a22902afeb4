from sqlalchemy import inspect as sa_inspect


def is_loaded(obj, relation: str) -> bool:
    """True if ``relation`` was populated without a lazy load."""
    return relation not in sa_inspect(obj).unloaded


class RecordingQuery:
    """Stand-in query that records the preload tree it is asked to build."""

    def __init__(self, relation: str = "<root>"):
        self.relation = relation
        self.children: dict[str, "RecordingQuery"] = {}
        self.calls: list[tuple[str, bool]] = []

    def preload(self, relation, configure=None):
        self.calls.append((relation, configure is not None))
        child = self.children.setdefault(relation, RecordingQuery(relation))
        if configure is not None:
            configure(child)
        return self

    def tree(self) -> dict:
        return {name: child.tree() for name, child in self.children.items()}
