from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest


class _LoopbackGroup:
    def __init__(self, size: int):
        self.size = int(size)
        self.barrier = threading.Barrier(self.size, timeout=30)
        self.slots: list = [None] * self.size
        self.ops: list = []


class LoopbackComm:
    """In-process communicator; each rank runs in its own thread.

    Allreduce sums contributions in rank order, so every rank receives the
    same bits.
    """

    def __init__(self, group: _LoopbackGroup, rank: int):
        self.group = group
        self.rank = int(rank)

    def Get_rank(self):
        return self.rank

    def Get_size(self):
        return self.group.size

    def Allreduce(self, sendbuf, recvbuf, op=None):
        g = self.group
        g.slots[self.rank] = np.array(sendbuf, copy=True)
        if self.rank == 0:
            g.ops.append(op)
        g.barrier.wait()
        total = np.zeros_like(g.slots[0])
        for s in g.slots:
            total += s
        recvbuf[...] = total
        g.barrier.wait()

    def bcast(self, obj, root=0):
        g = self.group
        if self.rank == root:
            g.slots[root] = obj
        g.barrier.wait()
        out = g.slots[root]
        g.barrier.wait()
        return out

    def Barrier(self):
        self.group.barrier.wait()

    def Abort(self, code=1):
        raise RuntimeError(f"abort({code}) on loopback rank {self.rank}")


@pytest.fixture
def run_ranks():
    """Run ``fn(comm)`` on ``size`` loopback ranks and return results by rank."""

    def _run(size: int, fn):
        group = _LoopbackGroup(size)
        comms = [LoopbackComm(group, r) for r in range(size)]
        with ThreadPoolExecutor(max_workers=size) as pool:
            futures = [pool.submit(fn, c) for c in comms]
            return [f.result(timeout=60) for f in futures]

    return _run
