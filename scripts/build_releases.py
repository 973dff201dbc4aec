#!/usr/bin/env python3
"""
Build per-category release files from repositories/**/metadata.json.
Writes releases/category-<slug>.json for every category, the
releases/categories.json index, and removes release files of categories
that no longer exist.

Usage:
    python scripts/build_releases.py
    python scripts/build_releases.py --timestamps metadata   # Category time from its apps
    python scripts/build_releases.py --no-prune              # Keep obsolete release files
"""

import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List, Dict, Any

from catalog_aggregate import Category, group_by_category, write_json
from catalog_metadata import MetadataCollector, load_apps, load_valid_categories, metadata_path, to_posix
from catalog_timestamps import TimestampSource, git_timestamp_source, iso

REPO_ROOT = Path(__file__).resolve().parent.parent

INDEX_FILENAME = 'categories.json'
CONSOLIDATED_FILENAME = 'category-all.json'
THEMES_CATEGORY = 'Themes'

# Internal fields never published in category release files
INTERNAL_FIELDS = ('commit', 'owner', 'repo', 'path', 'filePath', 'category', 'files')


def clean_app(app: Dict[str, Any]) -> Dict[str, Any]:
    """Public view of an app for a category release file"""
    clean = {k: v for k, v in app.items() if k not in INTERNAL_FIELDS}
    clean['slug'] = f"{app['owner']}/{app['repo']}/{app['name']}"

    # Device lists for apps and scripts, screen sizes for themes
    is_theme = app.get('category') == THEMES_CATEGORY
    clean.pop('supported-devices', None)
    clean.pop('supported-screen-size', None)
    if app.get('supported-devices') and not is_theme:
        clean['supported-devices'] = app['supported-devices']
    if app.get('supported-screen-size') and is_theme:
        clean['supported-screen-size'] = app['supported-screen-size']

    return clean


def release_document(category: Category) -> Dict[str, Any]:
    return {
        'category': category.name,
        'count': category.count,
        'apps': [clean_app(app) for app in category.apps],
    }


def prune_releases(output_dir: Path, keep: List[str]) -> List[str]:
    """Delete category-*.json files that are not in keep"""
    removed = []
    for existing in sorted(output_dir.glob('category-*.json')):
        if existing.name in keep or existing.name == CONSOLIDATED_FILENAME:
            continue
        try:
            existing.unlink()
        except OSError as e:
            print(f"Warning: Could not remove {existing.name}: {e}", file=sys.stderr)
            continue
        removed.append(existing.name)
        print(f"Removed obsolete file: {existing.name}", file=sys.stderr)
    return removed


@dataclass
class ReleaseBuildResult:
    categories: List[Category] = field(default_factory=list)
    total_apps: int = 0
    skipped: int = 0
    written: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    index_written: bool = False
    ok: bool = True


def build_releases(repo_root: Path, repositories_dir: Path, output_dir: Path, timestamps: TimestampSource,
                   valid_categories: Optional[List[str]] = None, timestamp_mode: str = 'release-file',
                   prune: bool = True, verbose: bool = False) -> ReleaseBuildResult:
    """Generate every per-category release file and the categories index"""
    result = ReleaseBuildResult()

    metadata_files = MetadataCollector(repositories_dir, repo_root).discover_all()
    print(f"Found {len(metadata_files)} metadata files", file=sys.stderr)
    if not metadata_files:
        print("No metadata files found. No release files will be generated.", file=sys.stderr)
        return result

    apps, result.skipped = load_apps(metadata_files, verbose=verbose)
    result.total_apps = len(apps)
    print(f"Processed: {len(apps)}, Skipped: {result.skipped}", file=sys.stderr)

    if valid_categories:
        for name in sorted({app['category'] for app in apps} - set(valid_categories)):
            print(f"Warning: Category '{name}' is not listed in the categories file", file=sys.stderr)

    result.categories = group_by_category(apps)

    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        print(f"Error: Could not create {output_dir}: {e}", file=sys.stderr)
        result.ok = False
        return result

    published: List[Category] = []
    claimed: Dict[str, str] = {}
    for category in result.categories:
        filename = category.release_filename
        if filename in claimed:
            print(f"Error: Categories '{claimed[filename]}' and '{category.name}' both map to {filename}; "
                  f"skipping '{category.name}'", file=sys.stderr)
            result.failed.append(filename)
            continue
        claimed[filename] = category.name
        try:
            write_json(output_dir / filename, release_document(category))
        except OSError as e:
            print(f"Error: Failed to write {filename}: {e}", file=sys.stderr)
            result.failed.append(filename)
            continue
        result.written.append(filename)
        published.append(category)
        print(f"Generated {filename} with {category.count} apps", file=sys.stderr)

    # Timestamps are read after writing so a changed release file shows as uncommitted
    for category in published:
        if timestamp_mode == 'metadata':
            category.last_updated = max(timestamps.resolve(metadata_path(app)) for app in category.apps)
        else:
            category.last_updated = timestamps.resolve(to_posix(output_dir / category.release_filename, repo_root))

    if published:
        index = {
            'totalCategories': len(published),
            'totalApps': result.total_apps,
            'categories': [c.to_dict(include_apps=False) for c in published],
        }
        try:
            write_json(output_dir / INDEX_FILENAME, index)
            result.index_written = True
            print(f"Generated {INDEX_FILENAME} with {len(published)} categories", file=sys.stderr)
        except OSError as e:
            print(f"Error: Failed to write {INDEX_FILENAME}: {e}", file=sys.stderr)
            result.ok = False

    if prune:
        result.removed = prune_releases(output_dir, [c.release_filename for c in result.categories])

    return result


def print_summary(result: ReleaseBuildResult) -> None:
    print("", file=sys.stderr)
    print("Summary:", file=sys.stderr)
    print(f"   Categories: {len(result.categories)}", file=sys.stderr)
    print(f"   Total apps: {result.total_apps}", file=sys.stderr)
    print(f"   Release files: {len(result.written)}", file=sys.stderr)
    for category in result.categories:
        if category.last_updated is not None:
            print(f"   - {category.release_filename} (last updated: {iso(category.last_updated)})", file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Generate per-category release files')
    parser.add_argument('--root', type=Path, default=REPO_ROOT, help='Repository root (git working tree)')
    parser.add_argument('--repositories-dir', type=Path, help='Directory holding metadata.json files')
    parser.add_argument('--output-dir', type=Path, help='Directory for release files')
    parser.add_argument('--categories-file', type=Path, help='List of valid category names')
    parser.add_argument('--timestamps', choices=['release-file', 'metadata'], default='release-file',
                        help='Take category lastUpdated from its release file or from its apps')
    parser.add_argument('--no-prune', action='store_true', help='Keep release files of removed categories')
    parser.add_argument('--verbose', action='store_true', help='Print per-file details')
    args = parser.parse_args(argv)

    root = args.root.resolve()
    repositories_dir = args.repositories_dir or root / 'repositories'
    output_dir = args.output_dir or root / 'releases'
    categories_file = args.categories_file or root / 'categories.json'

    print("Generating release files...", file=sys.stderr)
    valid_categories = load_valid_categories(categories_file)
    print(f"Valid categories: {', '.join(valid_categories)}", file=sys.stderr)

    result = build_releases(
        repo_root=root,
        repositories_dir=repositories_dir,
        output_dir=output_dir,
        timestamps=git_timestamp_source(root, verbose=args.verbose),
        valid_categories=valid_categories,
        timestamp_mode=args.timestamps,
        prune=not args.no_prune,
        verbose=args.verbose,
    )

    print_summary(result)
    if not result.ok:
        return 1
    print("Release file generation complete!", file=sys.stderr)
    return 0


if __name__ == '__main__':
    sys.exit(main())
