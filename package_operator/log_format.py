"""
Custom logging formats that contain more detailed package operator logs
"""

# First Party
from alog import AlogJsonFormatter


class PackageOperatorJsonFormatter(AlogJsonFormatter):
    """Custom Log Format that extends AlogJsonFormatter to add process and
    thread information and, when a log call passes a `resource` extra, the
    identifiers of the object being worked on
    """

    _FIELDS_TO_PRINT = AlogJsonFormatter._FIELDS_TO_PRINT + [
        "process",
        "thread",
        "threadName",
        "kind",
        "apiVersion",
        "resourceName",
        "resourceNamespace",
        "resourceVersion",
    ]

    def format(self, record):
        if resource := getattr(record, "resource", None):
            record.kind = resource.get("kind")
            record.apiVersion = resource.get("apiVersion")

            metadata = resource.get("metadata", {})
            record.resourceName = metadata.get("name")
            record.resourceNamespace = metadata.get("namespace")
            record.resourceVersion = metadata.get("resourceVersion")

        return super().format(record)
