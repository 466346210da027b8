from dataclasses import dataclass


@dataclass(frozen=True)
class SourceFiles:
    """
    Resolved local inputs of the archive.
    sources are concrete paths, excludes are patterns handed to the archiver.
    """
    sources: tuple[str, ...] = ()
    excludes: tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.sources)

    def __len__(self) -> int:
        return len(self.sources)
