"""
Metadata discovery and loading.
Finds every metadata.json under the repositories tree and turns the valid
ones into app dictionaries ready for aggregation.
"""

import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, List, Dict, Any, Iterable, Set, Tuple

import yaml

METADATA_FILENAME = 'metadata.json'

REQUIRED_FIELDS = ('name', 'category', 'description', 'version', 'commit', 'owner', 'repo', 'path')

# Used as sort keys and slug sources
STRING_FIELDS = ('name', 'category')


def warn(message: str) -> None:
    print(f"Warning: {message}", file=sys.stderr)


def to_posix(path: Path, base: Path) -> str:
    """Path relative to base with forward slashes, absolute if outside base"""
    try:
        return path.relative_to(base).as_posix()
    except ValueError:
        return path.as_posix()


@dataclass(frozen=True)
class MetadataFile:
    """A discovered metadata.json"""
    full_path: Path
    relative_path: str
    directory_path: str


class MetadataCollector:
    """Recursively collect metadata.json files under a repositories directory"""

    def __init__(self, repositories_dir: Path, repo_root: Optional[Path] = None):
        self.repositories_dir = Path(repositories_dir)
        self.repo_root = Path(repo_root) if repo_root else self.repositories_dir.parent

    def discover_all(self) -> List[MetadataFile]:
        """Find all metadata files, ordered by relative path"""
        if not self.repositories_dir.is_dir():
            warn(f"Repositories directory does not exist: {self.repositories_dir}")
            return []

        found = list(self._walk(self.repositories_dir, set()))
        found.sort(key=lambda f: f.relative_path)
        return found

    def _walk(self, directory: Path, visited: Set[Path]) -> Iterable[MetadataFile]:
        try:
            real = directory.resolve()
        except (OSError, RuntimeError) as e:
            warn(f"Could not resolve directory {directory}: {e}")
            return
        if real in visited:
            warn(f"Skipping {directory}: already visited (symlink loop)")
            return
        visited.add(real)

        try:
            children = list(directory.iterdir())
        except OSError as e:
            warn(f"Could not read directory {directory}: {e}")
            return

        for child in children:
            if child.is_dir():
                yield from self._walk(child, visited)
            elif child.name == METADATA_FILENAME:
                directory_path = to_posix(child.parent, self.repositories_dir)
                yield MetadataFile(
                    full_path=child.resolve(),
                    relative_path=to_posix(child, self.repo_root),
                    directory_path='' if directory_path == '.' else directory_path,
                )


def _is_empty(value: Any) -> bool:
    return value is None or value == ''


def load_metadata(metadata_file: MetadataFile, required: Iterable[str] = REQUIRED_FIELDS) -> Optional[Dict[str, Any]]:
    """Parse and validate one metadata file, None if it should be skipped"""
    source = metadata_file.relative_path
    try:
        metadata = json.loads(metadata_file.full_path.read_text(encoding='utf-8'))
    except (OSError, ValueError) as e:
        warn(f"Skipping {source}: {e}")
        return None

    if not isinstance(metadata, dict):
        warn(f"Skipping {source}: expected a JSON object, got {type(metadata).__name__}")
        return None

    for field in required:
        if _is_empty(metadata.get(field)):
            warn(f"Skipping {source}: missing or empty field '{field}'")
            return None

    for field in STRING_FIELDS:
        value = metadata.get(field)
        if not _is_empty(value) and not isinstance(value, str):
            warn(f"Skipping {source}: field '{field}' must be a string")
            return None

    metadata['filePath'] = source.rsplit('/', 1)[0] if '/' in source else '.'
    return metadata


def metadata_path(app: Dict[str, Any]) -> str:
    """Repository-relative path of the metadata.json a loaded app came from"""
    if app['filePath'] == '.':
        return METADATA_FILENAME
    return f"{app['filePath']}/{METADATA_FILENAME}"


def load_apps(metadata_files: Iterable[MetadataFile], required: Iterable[str] = REQUIRED_FIELDS,
              verbose: bool = False) -> Tuple[List[Dict[str, Any]], int]:
    """Load every metadata file, returning (valid apps, skipped count)"""
    required = tuple(required)
    apps = []
    skipped = 0

    for metadata_file in metadata_files:
        app = load_metadata(metadata_file, required)
        if app is None:
            skipped += 1
            continue
        if verbose:
            print(f"Loaded {app['name']} from {app['filePath']} (category: {app.get('category')})", file=sys.stderr)
        apps.append(app)

    return apps, skipped


def load_valid_categories(categories_file: Path) -> List[str]:
    """Load the maintained list of category names.

    The file is read with yaml.safe_load, so both the JSON list and an
    equivalent YAML sequence are accepted. Any problem yields an empty list.
    """
    try:
        with open(categories_file, encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        warn(f"Could not load {categories_file}: {e}")
        return []

    if not isinstance(data, list):
        warn(f"Could not load {categories_file}: expected a list of category names")
        return []

    return [str(name) for name in data]
