"""
Build-index manifest resolution.

`csolution convert` writes a build-index manifest (`<solution>.cbuild-idx.yml`)
describing the generated project descriptor (`*.cprj`) of every context. The
manifest may be a multi-document YAML stream:

    build-idx:                         # front document: solution-level facts
      generated-by: csolution version 2.0.0
      csolution: Test.csolution.yml
      cbuilds:
        - cbuild: cm0plus/HelloWorld_cm0plus.Debug+FRDM-K32L3A6.cbuild.yml
          project: HelloWorld_cm0plus
          configuration: .Debug+FRDM-K32L3A6
    ---
    context: Extra.Debug+Board         # per-context record
    cprj: extra/Extra.Debug+Board.cprj

Records from every document are concatenated in document order and
de-duplicated by context on first occurrence. Descriptor paths are relative
to the manifest's own directory.
"""

from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterable, List, Optional, Union

import yaml

from ctxbuild.exceptions import (
    ContextNotFoundError,
    ManifestNotFoundError,
    ManifestParseError,
)

INDEX_SUFFIX = ".cbuild-idx.yml"
SOLUTION_SUFFIX = ".csolution.yml"
CBUILD_SUFFIX = ".cbuild.yml"
CPRJ_SUFFIX = ".cprj"


@dataclass(frozen=True)
class ContextRecord:
    """One context declared in a build-index manifest."""

    context: str
    cprj: str


@dataclass
class BuildIndex:
    """Parsed build-index manifest."""

    path: Path
    generated_by: str = ""
    solution: str = ""
    records: List[ContextRecord] = field(default_factory=list)

    @property
    def contexts(self) -> List[str]:
        """Context identifiers in declaration order."""
        return [record.context for record in self.records]

    def find(self, context: str) -> Optional[ContextRecord]:
        """Look up a context by exact identifier."""
        for record in self.records:
            if record.context == context:
                return record
        return None


def _parse_record(entry: Dict[str, Any], source: Path) -> ContextRecord:
    """Build a ContextRecord from one manifest mapping."""
    cbuild = str(entry.get("cbuild") or "")

    context = str(entry.get("context") or "")
    if not context and entry.get("project"):
        context = f"{entry['project']}{entry.get('configuration') or ''}"
    if not context and cbuild:
        name = PurePosixPath(cbuild).name
        if name.endswith(CBUILD_SUFFIX):
            context = name[: -len(CBUILD_SUFFIX)]
    if not context:
        raise ManifestParseError(f"{source}: record without a context identifier: {entry}")

    cprj = str(entry.get("cprj") or "")
    if not cprj:
        parent = PurePosixPath(cbuild).parent if cbuild else PurePosixPath(".")
        cprj = str(parent / f"{context}{CPRJ_SUFFIX}")

    return ContextRecord(context=context, cprj=cprj)


def _records_from_list(entries: Any, source: Path) -> Iterable[ContextRecord]:
    if entries is None:
        return
    if not isinstance(entries, list):
        raise ManifestParseError(f"{source}: 'cbuilds' must be a list")
    for entry in entries:
        if not isinstance(entry, dict):
            raise ManifestParseError(f"{source}: invalid cbuild entry: {entry!r}")
        yield _parse_record(entry, source)


def load_build_index(index_path: Union[str, Path]) -> BuildIndex:
    """
    Load and merge every document of a build-index manifest.

    Args:
        index_path: Path to the *.cbuild-idx.yml file

    Returns:
        BuildIndex with records in declaration order, duplicates removed

    Raises:
        ManifestNotFoundError: If the file does not exist or cannot be read
        ManifestParseError: If the file is not a valid manifest
    """
    path = Path(index_path)
    if not path.is_file():
        raise ManifestNotFoundError(f"Build index file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            documents = [doc for doc in yaml.safe_load_all(f) if doc is not None]
    except OSError as e:
        raise ManifestNotFoundError(f"Failed to read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ManifestParseError(f"Failed to parse {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise ManifestParseError(f"{path} is not valid UTF-8: {e}") from e

    index = BuildIndex(path=path)
    records: List[ContextRecord] = []

    for document in documents:
        if not isinstance(document, dict):
            raise ManifestParseError(f"{path}: expected a mapping document, got {type(document).__name__}")

        front = document.get("build-idx")
        if isinstance(front, dict):
            index.generated_by = index.generated_by or str(front.get("generated-by") or "")
            index.solution = index.solution or str(front.get("csolution") or "")
            records.extend(_records_from_list(front.get("cbuilds"), path))
        elif "cbuilds" in document:
            records.extend(_records_from_list(document.get("cbuilds"), path))
        elif "context" in document or "cbuild" in document or "project" in document:
            records.append(_parse_record(document, path))

    seen = set()
    for record in records:
        if record.context not in seen:
            seen.add(record.context)
            index.records.append(record)

    return index


def get_selected_contexts(index_path: Union[str, Path]) -> List[str]:
    """
    Get every context declared in a build-index manifest.

    Args:
        index_path: Path to the *.cbuild-idx.yml file

    Returns:
        Context identifiers in declaration order without duplicates

    Raises:
        ManifestNotFoundError: If the manifest is missing or invalid
    """
    return load_build_index(index_path).contexts


def get_cprj_file_path(index_path: Union[str, Path], context: str) -> Path:
    """
    Resolve the generated project descriptor of a context.

    Args:
        index_path: Path to the *.cbuild-idx.yml file
        context: Exact context identifier

    Returns:
        Descriptor path joined onto the manifest's directory

    Raises:
        ManifestNotFoundError: If the manifest is missing or invalid
        ContextNotFoundError: If the manifest does not declare the context
    """
    index = load_build_index(index_path)
    record = index.find(context)
    if record is None:
        raise ContextNotFoundError(
            f"Context '{context}' not found in {index.path}", contexts=[context]
        )
    return index.path.parent / Path(record.cprj)


def build_index_path(input_file: Union[str, Path], output_dir: Optional[Union[str, Path]] = None) -> Path:
    """
    Get the manifest path `csolution convert` produces for a solution.

    Args:
        input_file: Path to the *.csolution.yml file
        output_dir: Output directory passed to csolution, if any

    Returns:
        Path to <solution name>.cbuild-idx.yml
    """
    input_path = Path(input_file)
    name = input_path.name
    if name.endswith(SOLUTION_SUFFIX):
        name = name[: -len(SOLUTION_SUFFIX)]
    else:
        name = input_path.stem

    directory = Path(output_dir) if output_dir else input_path.parent
    return directory / f"{name}{INDEX_SUFFIX}"
