"""
Codecs for the small single-purpose host files.

Each class handles one file format; `files.register_host_files` binds
them to their paths.
"""

import hashlib
import ipaddress
import logging
import os
import re
from typing import IO, Any, Dict, List, Optional

from typing_extensions import override

from .. import constants
from ..exceptions import CodecError, HostConfError, HostConfIOError
from .base import Codec

logger = logging.getLogger(__name__)

_HOSTNAME_RE = re.compile(r"^[.\-a-zA-Z0-9]+$")


def strip_domain(name: str) -> str:
    return re.sub(r"\..*$", "", name)


_nodename: Optional[str] = None


def nodename() -> str:
    """Short host name of the running system, without domain part."""
    global _nodename
    if _nodename:
        return _nodename
    name = strip_domain(os.uname().nodename)
    if not name:
        raise HostConfError("unable to read node name")
    _nodename = name
    return _nodename


def is_ip_address(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


class HostnameCodec(Codec):
    """/etc/hostname: the first line, domain part stripped."""

    @override
    def parse(self, path: str, fh: Optional[IO[str]]) -> str:
        return strip_domain(fh.readline().rstrip("\n"))

    @override
    def write(self, path: str, fh: IO[str], value: str) -> str:
        fh.write(f"{value}\n")
        return value


class HostsCodec(Codec):
    """
    /etc/hosts, kept as raw text.

    Reading returns `{"digest": <sha1 of the content>, "data": <content>}`
    so callers can detect concurrent modification.
    """

    @override
    def parse(self, path: str, fh: Optional[IO[str]]) -> Dict[str, str]:
        data = fh.read()
        return {
            "digest": hashlib.sha1(data.encode("utf-8")).hexdigest(),
            "data": data,
        }

    @staticmethod
    def validate(hosts: str):
        for line in hosts.split("\n"):
            if re.match(r"^\s*#", line) or re.match(r"^\s*$", line):
                continue
            ip, *names = line.split()
            if not is_ip_address(ip):
                raise CodecError(f"Invalid IP '{ip}'", field="data")
            for name in names:
                if not _HOSTNAME_RE.match(name):
                    raise CodecError(f"Invalid Hostname '{name}'", field="data")

    @override
    def write(self, path: str, fh: IO[str], value: str) -> str:
        self.validate(value)
        fh.write(value)
        return value


class ResolvConfCodec(Codec):
    """
    /etc/resolv.conf as `{"search": ..., "dns1": ..., "dns2": ..., "dns3": ...}`.

    There is no plain writer; `update` rewrites the managed lines and keeps
    every other line of the current file.
    """

    @override
    def parse(self, path: str, fh: Optional[IO[str]]) -> Dict[str, str]:
        res: Dict[str, str] = {}
        count = 0
        for line in fh:
            line = line.rstrip("\n")
            m = re.match(r"^(search|domain)\s+(\S+)\s*", line)
            if m:
                res["search"] = m.group(2)
                continue
            m = re.match(r"^\s*nameserver\s+(\S+)\s*", line)
            if m and is_ip_address(m.group(1)):
                count += 1
                if count <= 3:
                    res[f"dns{count}"] = m.group(1)
        return res

    def update(self, path: str, fh: Optional[IO[str]], resolv: Dict[str, str], *args: Any) -> str:
        data = ""
        if resolv.get("search"):
            data = f"search {resolv['search']}\n"

        written = set()
        for key in ("dns1", "dns2", "dns3"):
            ns = resolv.get(key)
            if ns and ns != "0.0.0.0" and ns not in written:
                written.add(ns)
                data += f"nameserver {ns}\n"

        if fh is not None:
            for line in fh:
                if re.match(r"^(search|domain|nameserver)\s+", line):
                    continue
                data += line
        return data


class TimezoneCodec(Codec):
    """/etc/timezone; writing also repoints the /etc/localtime symlink."""

    def __init__(self, zoneinfo_dir: str = constants.ZONEINFO_DIR,
                 localtime: str = constants.LOCALTIME_LINK):
        self.zoneinfo_dir = zoneinfo_dir
        self.localtime = localtime

    @override
    def parse(self, path: str, fh: Optional[IO[str]]) -> str:
        return fh.readline().rstrip("\n")

    @override
    def write(self, path: str, fh: IO[str], value: str) -> str:
        tzinfo = os.path.join(self.zoneinfo_dir, value)
        if not value or not os.path.isfile(tzinfo):
            raise CodecError("No such timezone", field="timezone")

        fh.write(f"{value}\n")

        try:
            os.unlink(self.localtime)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise HostConfIOError(f"unable to remove '{self.localtime}' - {e.strerror}", path=self.localtime) from e
        try:
            os.symlink(tzinfo, self.localtime)
        except OSError as e:
            raise HostConfIOError(f"unable to link '{self.localtime}' - {e.strerror}", path=self.localtime) from e
        logger.info(f"Timezone set to '{value}'")
        return value


class InitiatorNameCodec(Codec):
    """iSCSI initiator name; read only."""

    @override
    def parse(self, path: str, fh: Optional[IO[str]]) -> str:
        for line in fh:
            m = re.match(r"^InitiatorName=(\S+)$", line.rstrip("\n"))
            if m:
                return m.group(1)
        return "undefined"


_UPID_RE = re.compile(
    r"^UPID:([a-zA-Z0-9]([a-zA-Z0-9\-]*[a-zA-Z0-9])?):([0-9A-Fa-f]{8}):([0-9A-Fa-f]{8,9}):"
    r"([0-9A-Fa-f]{8}):([^:\s]+):([^:\s]*):([^:\s]+):$"
)

_ACTIVE_LINE_RE = re.compile(r"^(\S+)\s(0|1)(\s([0-9A-Fa-f]{8})(\s(\s*\S.*))?)?$")


def upid_decode(upid: str) -> Optional[Dict[str, Any]]:
    """Split a task id `UPID:node:pid:pstart:starttime:type:id:user:`; None if malformed."""
    m = _UPID_RE.match(upid)
    if not m:
        return None
    return {
        "node": m.group(1),
        "pid": int(m.group(3), 16),
        "pstart": int(m.group(4), 16),
        "starttime": int(m.group(5), 16),
        "type": m.group(6),
        "id": m.group(7),
        "user": m.group(8),
    }


class ActiveTasksCodec(Codec):
    """
    The active task list, one `UPID SAVED [ENDTIME [STATUS]]` line per task.

    Registered with `always_call_parser`: a missing file is an empty list.
    """

    @override
    def parse(self, path: str, fh: Optional[IO[str]]) -> List[Dict[str, Any]]:
        if fh is None:
            return []

        tasks = []
        for line in fh:
            line = line.rstrip("\n")
            m = _ACTIVE_LINE_RE.match(line)
            if not m:
                logger.warning(f"unable to parse line: {line}")
                continue
            task = upid_decode(m.group(1))
            if task is None:
                continue
            task["upid"] = m.group(1)
            task["saved"] = m.group(2)
            if m.group(4):
                task["endtime"] = int(m.group(4), 16)
            if m.group(6):
                task["status"] = m.group(6)
            tasks.append(task)
        return tasks

    @override
    def write(self, path: str, fh: IO[str], value: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        raw = ""
        for task in value:
            upid = task["upid"]
            saved = 1 if task.get("saved") and task.get("saved") != "0" else 0
            endtime = task.get("endtime")
            if endtime:
                if task.get("status"):
                    raw += f"{upid} {saved} {endtime:08X} {task['status']}\n"
                else:
                    raw += f"{upid} {saved} {endtime:08X}\n"
            else:
                raw += f"{upid} {saved}\n"
        fh.write(raw)
        return value


class AptAuthCodec(Codec):
    """
    apt's auth.conf as `{machine: {"login": ..., "password": ...}}`.

    Setting a machine to None in an update removes its entry.
    """

    @override
    def parse(self, path: str, fh: Optional[IO[str]]) -> Dict[str, Dict[str, str]]:
        raw = fh.read() if fh is not None else ""
        tokens = iter(raw.split())

        data: Dict[str, Dict[str, str]] = {}
        machine = None
        for tok in tokens:
            if tok == "machine":
                machine = next(tokens, None)
            if not machine:
                continue
            entry = data.setdefault(machine, {})
            if tok in ("login", "password"):
                value = next(tokens, None)
                if value is not None:
                    entry[tok] = value
        return data

    @staticmethod
    def format(data: Dict[str, Optional[Dict[str, str]]]) -> str:
        raw = ""
        # longer entries first, so more specific machine definitions win
        for machine in sorted(data, key=lambda m: (-len(m), m)):
            entry = data[machine]
            if entry is None:
                continue
            raw += f"machine {machine}\n"
            if entry.get("login"):
                raw += f" login {entry['login']}\n"
            if entry.get("password"):
                raw += f" password {entry['password']}\n"
            raw += "\n"
        return raw

    @override
    def write(self, path: str, fh: IO[str], value: Dict[str, Optional[Dict[str, str]]]):
        fh.write(self.format(value) + "\n")
        return value

    def update(self, path: str, fh: Optional[IO[str]], value: Dict[str, Optional[Dict[str, str]]],
               *args: Any) -> str:
        merged: Dict[str, Optional[Dict[str, str]]] = dict(self.parse(path, fh))
        merged.update(value)
        return self.format(merged)
