"""Annotation keys read and written by kubexpose."""

# Ownership marker stamped on every generated access object
OWNER_ANNOTATION = "kubexpose.io/generated-by"
OWNER_VALUE = "kubexpose"

# Comma-separated keys of the annotations kubexpose set on an access object
MANAGED_ANNOTATIONS_ANNOTATION = "kubexpose.io/managed-annotations"

# Written on services once their external URL is known
EXPOSE_URL_ANNOTATION = "kubexpose.io/exposeUrl"

# Read from services
EXPOSE_ANNOTATION = "kubexpose.io/expose"
HOST_ANNOTATION = "kubexpose.io/host"
PORT_ANNOTATION = "kubexpose.io/port"
PATH_ANNOTATION = "kubexpose.io/path"
INGRESS_ANNOTATIONS_ANNOTATION = "kubexpose.io/ingress.annotations"

# Set on generated Ingresses when certificates are requested
TLS_ACME_ANNOTATION = "kubernetes.io/tls-acme"
