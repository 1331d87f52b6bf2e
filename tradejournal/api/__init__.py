from tradejournal.api.handlers import JournalAPI
from tradejournal.api.server import JournalHTTPServer, build_api, run_api_server

__all__ = ["JournalAPI", "JournalHTTPServer", "build_api", "run_api_server"]
