import os
import tempfile

# truckwatch.main builds an app at import time; keep its storage out of the working tree
os.environ.setdefault("TRUCKWATCH_DATA_ROOT", tempfile.mkdtemp(prefix="truckwatch-tests-"))
os.environ.setdefault("TRUCKWATCH_AUTO_CALCULATE", "false")
os.environ.setdefault("TRUCKWATCH_VEHICLE_REFRESH_MINUTES", "0")
