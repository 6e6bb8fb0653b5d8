__version__ = "0.1.0"
__description__ = (
    "Kubernetes controller that keeps in-cluster services exposed to external callers "
    "through generated Ingress or Route objects"
)
