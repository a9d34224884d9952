"""Nimbus: reconcile declarative service manifests onto Kubernetes."""

__version__ = "0.1.0"
