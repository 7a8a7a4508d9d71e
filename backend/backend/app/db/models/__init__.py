from .common import *  # noqa
from .auth import *  # noqa
from .security_audit import *  # noqa
from .inventory_exec import *  # noqa
from .wms.tasking import *  # noqa
from .docs import *  # noqa
from .wms.shifts import *  # noqa
