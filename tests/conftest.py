import os
import warnings

# Ignore warnings from livecast.shared
warnings.filterwarnings("ignore", category=DeprecationWarning, module="livecast.shared.*")

# Unit tests never reach real collaborators
os.environ.update({"DEMO_MODE": "true"})

# Import live fixtures so they are available to all tests
from tests.fixtures.live_fixtures import *  # noqa: E402, F403
