"""Shared fixtures for the gobundle test suite."""

from dataclasses import dataclass, field

import pytest

from gobundle.metadata import BuildUnit, LookupFailed, LookupResult, Resolved, Unresolved


@dataclass
class FakePackage:
    path: str
    imports: tuple[str, ...] = ()
    standard: bool = False


@dataclass
class FakeProvider:
    """In-memory metadata provider.

    ``packages`` maps an import path to its package; ``overrides`` maps an
    ``(import path, origin)`` pair to a package for importer-specific answers.
    Import paths listed in ``failing`` answer with a lookup failure.
    """

    root_imports: tuple[str, ...] = ()
    packages: dict[str, FakePackage] = field(default_factory=dict)
    overrides: dict[tuple[str, str], FakePackage] = field(default_factory=dict)
    failing: set[str] = field(default_factory=set)
    root_fails: bool = False
    calls: list[tuple[str, str]] = field(default_factory=list)

    def load_dir(self, directory: str) -> LookupResult:
        if self.root_fails is True:
            return LookupFailed(identifier=".", origin=directory, detail="build constraints exclude all Go files")
        return Resolved(
            unit=BuildUnit(
                resolved_path=directory,
                import_identifier=".",
                is_platform_provided=False,
                declared_imports=self.root_imports,
            )
        )

    def load_import(self, identifier: str, origin_dir: str) -> LookupResult:
        self.calls.append((identifier, origin_dir))
        if identifier in self.failing:
            return LookupFailed(identifier=identifier, origin=origin_dir, detail="boom")
        pkg: FakePackage | None = self.overrides.get((identifier, origin_dir), self.packages.get(identifier))
        if pkg is None:
            return Unresolved(identifier=identifier, origin=origin_dir)
        return Resolved(
            unit=BuildUnit(
                resolved_path=pkg.path,
                import_identifier=identifier,
                is_platform_provided=pkg.standard,
                declared_imports=pkg.imports,
            )
        )


@pytest.fixture
def fake_provider() -> FakeProvider:
    """Provider for the reference scenario: root -> pkgA -> pkgB, plus cgo."""

    return FakeProvider(
        root_imports=("pkgA", "C"),
        packages={
            "pkgA": FakePackage(path="/src/a", imports=("pkgB",)),
            "pkgB": FakePackage(path="/src/b"),
        },
    )
