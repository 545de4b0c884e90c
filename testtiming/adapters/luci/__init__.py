"""LUCI service adapters.

- Gitiles (commit log, REST)
- Buildbucket (builders and builds, pRPC)
- ResultDB (test results, pRPC)
"""

from .buildbucket import BuildbucketClient
from .gitiles import GitilesSourceLog
from .resultdb import ResultDBClient

__all__ = ["BuildbucketClient", "GitilesSourceLog", "ResultDBClient"]
