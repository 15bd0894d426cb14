"""Data models for versioned identifiers."""

from dataclasses import dataclass

from ..exceptions import InvalidLibraryName


@dataclass(frozen=True)
class LibraryName:
    """A library identifier: namespace plus name, both case-sensitive."""
    namespace: str
    name: str

    @property
    def qualified_name(self) -> str:
        return f"{self.namespace}.{self.name}"

    @classmethod
    def from_qualified(cls, qualified: str) -> "LibraryName":
        """Parse ``Namespace.Name``.

        Raises:
            InvalidLibraryName: If the string does not have exactly two non-empty parts.
        """
        parts = qualified.strip().split(".")
        if len(parts) != 2 or not all(parts):
            raise InvalidLibraryName(
                f"'{qualified}' is not a valid qualified library name",
                context={"library": qualified},
            )
        return cls(namespace=parts[0], name=parts[1])

    def __str__(self) -> str:
        return self.qualified_name
