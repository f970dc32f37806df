from vunit.bridge.bridge import EventSyncBridge
from vunit.bridge.presenter import Presenter
from vunit.bridge.views import Command, ViewType
