"""
Shared module to hold constant values for the operator
"""

# API group and version for all package-operator owned kinds
API_GROUP = "package-operator.run"
API_VERSION = f"{API_GROUP}/v1alpha1"

# Kinds managed or generated by the operator
PACKAGE_KIND = "Package"
CLUSTER_PACKAGE_KIND = "ClusterPackage"
OBJECT_DEPLOYMENT_KIND = "ObjectDeployment"
CLUSTER_OBJECT_DEPLOYMENT_KIND = "ClusterObjectDeployment"
OBJECT_SET_KIND = "ObjectSet"
CLUSTER_OBJECT_SET_KIND = "ClusterObjectSet"

# Kinds the operator reads but does not own
DEPLOYMENT_API_VERSION = "apps/v1"
DEPLOYMENT_KIND = "Deployment"
CRD_API_VERSION = "apiextensions.k8s.io/v1"
CRD_GROUP = "apiextensions.k8s.io"
CRD_KIND = "CustomResourceDefinition"

# Labels put onto generated objects to tie them to their Package instance
INSTANCE_LABEL = f"{API_GROUP}/instance"
PACKAGE_LABEL = f"{API_GROUP}/package"

# Label marking objects that must be included in the dynamic cache
DYNAMIC_CACHE_LABEL = f"{API_GROUP}/cache"

# Annotation used in bundle objects to assign them to a phase
PHASE_ANNOTATION = f"{API_GROUP}/phase"

# Finalizer set by previous versions of the operator that ran loader jobs
LOADER_JOB_FINALIZER = f"{API_GROUP}/loader-job"

# Well-known names of the self-managed installation
SELF_PACKAGE_NAME = "package-operator"
SELF_DEPLOYMENT_NAME = "package-operator-manager"

# Bundle manifest file names and kind
PACKAGE_MANIFEST_FILES = ("manifest.yaml", "manifest.yml")
PACKAGE_MANIFEST_KIND = "PackageManifest"

# Condition types
PACKAGE_AVAILABLE = "Available"
PACKAGE_PROGRESSING = "Progressing"
PACKAGE_UNPACKED = "Unpacked"
PACKAGE_INVALID = "Invalid"
DEPLOYMENT_AVAILABLE = "Available"

# Condition status values
CONDITION_TRUE = "True"
CONDITION_FALSE = "False"
CONDITION_UNKNOWN = "Unknown"

# Package phases
PACKAGE_PHASE_UNPACKING = "Unpacking"
PACKAGE_PHASE_PROGRESSING = "Progressing"
PACKAGE_PHASE_AVAILABLE = "Available"
PACKAGE_PHASE_NOT_READY = "NotReady"
PACKAGE_PHASE_INVALID = "Invalid"

# ObjectSet phases
OBJECT_SET_PHASE_PENDING = "Pending"
OBJECT_SET_PHASE_PROGRESSING = "Progressing"
OBJECT_SET_PHASE_AVAILABLE = "Available"
OBJECT_SET_PHASE_NOT_READY = "NotReady"
OBJECT_SET_PHASE_ARCHIVED = "Archived"

# Delimiter used for nested dict keys
NESTED_DICT_DELIM = "."
