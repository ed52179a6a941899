#!/usr/bin/env python3
# -*- coding: utf-8 -*-


from datetime import datetime, timezone
import json
import os
import sys
import typing
import threading

import keepasshttp.constants as CONSTANTS


#####################################################################################################################################################################

"""
    Append-only JSON-lines audit trail for the KeePassHttp client.

    Each record is {"timestamp", "source", "pid", <bound context>, <event fields>}.
    Fields named like key material or urls are written as "<redacted>".
"""
class AuditLog:

	"""
		@param path (str|None): Log file; defaults to ~/.keepasshttpclient/audit.log or $KEEPASSHTTP_AUDIT_LOG.
		@param context: Fields added to every record written through this log.
	"""
	def __init__(self, path: typing.Optional[str] = None, **context: typing.Any):
		self._lock = threading.RLock()
		self._path = path or CONSTANTS.default_audit_log_path()
		self._context = context


	@property
	def path(self) -> str:
		return self._path


	@property
	def context(self) -> typing.Dict[str, typing.Any]:
		return dict(self._context)


	"""
		Derive a log writing to the same file under the same lock, with extra context.
	"""
	def bind(self, **context: typing.Any) -> "AuditLog":

		child = AuditLog(self._path, **{**self._context, **context})
		child._lock = self._lock
		return child


	def _record(self, kv: typing.Dict[str, typing.Any]) -> typing.Dict[str, typing.Any]:

		record = {
			"timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
			"source": CONSTANTS._AUDIT_SOURCE,
			"pid": os.getpid(),
		}
		record.update(self._context)
		record.update(kv)

		for name in record:
			if name.lower() in CONSTANTS._AUDIT_REDACTED_FIELDS and record[name] is not None:
				record[name] = CONSTANTS._AUDIT_REDACTED

		return record


	def event(self, **kv: typing.Any):

		record = self._record(kv)

		with self._lock:
			try:
				directory = os.path.dirname(self._path)
				if directory:
					os.makedirs(directory, exist_ok=True)

				with open(self._path, "a", encoding="utf-8") as f:
					f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")

			except OSError as e:
				print(f"Audit log write error ({self._path}): {e}", file=sys.stderr)
