"""TurtleHub: pick GitHub issues fixed by a commit."""

__version__ = "0.4.0"

APP_ID = "io.github.dail8859.TurtleHub"
APP_NAME = "TurtleHub"

# Repository the update checker looks at for new releases
RELEASE_OWNER = "dail8859"
RELEASE_REPOSITORY = "TurtleHub"
