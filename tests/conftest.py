from pathlib import Path


class FakeEstimator:
    """Counts whitespace-separated words; no tokenizer download needed."""

    def __init__(self, fixed=None):
        self.fixed = fixed
        self.seen = []

    def load(self):
        return self

    def estimate(self, text: str) -> int:
        self.seen.append(text)
        if self.fixed is not None:
            return self.fixed
        return len(text.split())


def make_tree(root: Path, spec: dict) -> None:
    """Create files/dirs from a nested dict; str values are file contents."""
    for name, value in spec.items():
        target = root / name
        if isinstance(value, dict):
            target.mkdir()
            make_tree(target, value)
        elif isinstance(value, bytes):
            target.write_bytes(value)
        else:
            target.write_text(value, encoding="utf-8")
