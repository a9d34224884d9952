import os

# Keep tests away from a developer's config.yaml and kubeconfig
os.environ.setdefault("PYTEST_RUNNING", "1")
os.environ.setdefault("NIMBUS_CONFIG", "tests/does-not-exist.yaml")

from tests.fixtures import *  # noqa: F401,F403
