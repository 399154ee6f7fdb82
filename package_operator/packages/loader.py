"""
The loader turns the raw files of a package bundle into ordered phases of
objects and from there into the template of an ObjectDeployment.

A bundle is a folder holding a manifest.yaml of kind PackageManifest which
declares the ordered phases of the package. Every other yaml file holds the
objects of the package, each assigned to one of the phases with the
package-operator.run/phase annotation.
"""

# Standard
from dataclasses import dataclass, field
from typing import Dict, List, Optional
import copy
import os
import pathlib

# Third Party
import yaml

# First Party
import alog

# Local
from .. import constants
from ..exceptions import PackageInvalidError
from ..utils import split_api_version

log = alog.use_channel("LOADR")

YAML_SUFFIXES = (".yaml", ".yml")


## Types #######################################################################


@dataclass
class PackagePhase:
    """One phase of a package with its objects in file order"""

    name: str
    objects: List[dict] = field(default_factory=list)


@dataclass
class PackageContent:
    """The parsed content of a package bundle"""

    manifest: dict
    phases: List[PackagePhase] = field(default_factory=list)

    @property
    def name(self) -> Optional[str]:
        return self.manifest.get("metadata", {}).get("name")


## Files #######################################################################


def load_files(path: str) -> Dict[str, bytes]:
    """Read every regular, non-hidden file below the given folder

    Args:
        path:  str
            The root folder of the bundle

    Returns:
        files:  Dict[str, bytes]
            Mapping from the posix path relative to the root to the file content
    """
    root = pathlib.Path(path)
    if not root.is_dir():
        raise PackageInvalidError(f"Package folder {path} does not exist")

    files = {}
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if not name.startswith("."))
        for fname in sorted(filenames):
            if fname.startswith("."):
                continue
            full_path = pathlib.Path(dirpath) / fname
            if not full_path.is_file():
                continue
            rel_path = full_path.relative_to(root).as_posix()
            log.debug3("Reading package file [%s]", rel_path)
            files[rel_path] = full_path.read_bytes()
    log.debug("Loaded %d files from %s", len(files), path)
    return files


## Loader ######################################################################


class PackageLoader:
    """The PackageLoader parses the files of a bundle into PackageContent"""

    def from_files(
        self, files: Dict[str, bytes], scope: Optional[str] = None
    ) -> PackageContent:
        """Parse the given files

        Args:
            files:  Dict[str, bytes]
                The bundle files as returned by load_files
            scope:  Optional[str]
                If given, the package manifest must list this scope
                ("Cluster" or "Namespaced") in spec.scopes

        Returns:
            content:  PackageContent
                The manifest and the ordered phases of objects
        """
        manifest = self._load_manifest(files)
        if scope is not None:
            scopes = manifest.get("spec", {}).get("scopes")
            if scopes is not None and scope not in scopes:
                raise PackageInvalidError(
                    f"Package does not support scope {scope}, only {scopes}"
                )

        phase_names = [
            phase.get("name") for phase in manifest.get("spec", {}).get("phases", [])
        ]
        if not phase_names or not all(
            isinstance(name, str) and name for name in phase_names
        ):
            raise PackageInvalidError("PackageManifest must declare named phases")
        if len(set(phase_names)) != len(phase_names):
            raise PackageInvalidError(f"Duplicate phases in manifest: {phase_names}")
        phases = {name: PackagePhase(name=name) for name in phase_names}

        for path in sorted(files):
            if path in constants.PACKAGE_MANIFEST_FILES or not path.endswith(
                YAML_SUFFIXES
            ):
                continue
            for obj in self._parse_documents(path, files[path]):
                phase_name = (
                    obj.get("metadata", {})
                    .get("annotations", {})
                    .get(constants.PHASE_ANNOTATION)
                )
                if phase_name not in phases:
                    raise PackageInvalidError(
                        f"Object {obj.get('kind')}/{obj['metadata'].get('name')} in "
                        f"{path} has unknown phase [{phase_name}]"
                    )
                phases[phase_name].objects.append(obj)

        content = PackageContent(
            manifest=manifest, phases=[phases[name] for name in phase_names]
        )
        log.debug(
            "Loaded package %s with phases %s",
            content.name,
            [(phase.name, len(phase.objects)) for phase in content.phases],
        )
        return content

    ## Implementation Details ##################################################

    @classmethod
    def _load_manifest(cls, files: Dict[str, bytes]) -> dict:
        manifest_paths = [
            path for path in constants.PACKAGE_MANIFEST_FILES if path in files
        ]
        if not manifest_paths:
            raise PackageInvalidError("Package is missing manifest.yaml")
        if len(manifest_paths) > 1:
            raise PackageInvalidError(f"Package has multiple manifests {manifest_paths}")

        docs = cls._parse_documents(manifest_paths[0], files[manifest_paths[0]])
        if len(docs) != 1 or docs[0].get("kind") != constants.PACKAGE_MANIFEST_KIND:
            raise PackageInvalidError(
                f"{manifest_paths[0]} must hold a single {constants.PACKAGE_MANIFEST_KIND}"
            )
        return docs[0]

    @staticmethod
    def _parse_documents(path: str, content: bytes) -> List[dict]:
        """Parse a multi-document yaml file, skipping empty documents"""
        try:
            docs = [doc for doc in yaml.safe_load_all(content) if doc is not None]
        except yaml.YAMLError as err:
            raise PackageInvalidError(f"Invalid YAML in {path}: {err}") from err
        for doc in docs:
            if not isinstance(doc, dict) or not isinstance(doc.get("metadata"), dict):
                raise PackageInvalidError(f"Non-object document in {path}")
            if not doc.get("kind") or not doc.get("apiVersion"):
                raise PackageInvalidError(f"Object without kind/apiVersion in {path}")
        return docs


## Template ####################################################################


def template_spec_from_package(content: PackageContent) -> dict:
    """Build the ObjectDeployment template spec from the package content"""
    return {
        "phases": [
            {
                "name": phase.name,
                "objects": [{"object": copy.deepcopy(obj)} for obj in phase.objects],
            }
            for phase in content.phases
        ]
    }


def crds_from_template_spec(template_spec: dict) -> List[dict]:
    """Collect every CustomResourceDefinition of a template spec in phase
    order
    """
    crds = []
    for phase in template_spec.get("phases", []):
        for entry in phase.get("objects", []):
            obj = entry.get("object", {})
            group, _ = split_api_version(obj.get("apiVersion", ""))
            if group == constants.CRD_GROUP and obj.get("kind") == constants.CRD_KIND:
                crds.append(copy.deepcopy(obj))
    return crds
