#!/usr/bin/env python3
#
# Copyright 2022 Max Planck Insitute Magdeburg
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
#
#
"""Merging of binary and energy variables of reactions with (anti-)parallel cycle participation"""

import logging
import numpy as np
from scipy import sparse
from looplaw import LinearProgram
from looplaw.names import *


def parallel_loop_rxns(N_int, live=None, cutoff=MERGE_CUTOFF) -> np.ndarray:
    """Find, for each reaction in loops, the first earlier reaction with a parallel null space row

    Args:
        N_int (sparse matrix or numpy.ndarray):
            Null space matrix restricted to the reactions in loops (#loop reactions x #cycles).

        live (optional (list of bool)):
            Only rows marked as live are compared. By default, all rows are live.

        cutoff (float): (Default: 0.9999999)
            Minimal absolute cosine similarity of two rows to be treated as (anti-)parallel.

    Returns:
        (numpy.ndarray):
        For each row i: 0 if no earlier row is (anti-)parallel, k+1 if row k is parallel and
        -(k+1) if row k is anti-parallel.
    """
    Ns = N_int.toarray() if sparse.issparse(N_int) else np.array(N_int, dtype=float)
    nint = Ns.shape[0]
    if live is None:
        live = np.ones(nint, dtype=bool)
    live = np.asarray(live, dtype=bool)
    norms = np.linalg.norm(Ns, axis=1)
    norms[norms == 0] = 1.0
    Ns = Ns / norms[:, None]
    t = Ns @ Ns.T
    t[np.abs(t) <= cutoff] = 0.0
    t[:, ~live] = 0.0
    checked_before = np.zeros(nint, dtype=int)
    for i in np.flatnonzero(live):
        x = np.flatnonzero(t[i, :i] > cutoff)
        y = np.flatnonzero(t[i, :i] < -cutoff)
        if len(x) and (not len(y) or x[0] < y[0]):
            checked_before[i] = x[0] + 1
        elif len(y):
            checked_before[i] = -(y[0] + 1)
    return checked_before


def _overlap(AT, target, source, skip_rows) -> bool:
    common = AT.getrow(target).multiply(AT.getrow(source)).nonzero()[1]
    return len(set(common) - skip_rows) > 0


def combine_loop_vars(milp, N_int) -> LinearProgram:
    """Merge the loop law variables of reactions whose cycle participation is proportional

    If the null space rows of two reactions in loops are parallel, the cycle structure forces both
    reactions into the same direction. The binary and energy variables of the later reaction are
    then replaced by those of the earlier one (a_i = a_k, g_i = g_k). If the rows are anti-parallel,
    the variables are replaced with opposite sign (a_i = 1 - a_k, g_i = -g_k) and the right hand
    side is compensated. Merged columns are removed from the problem. Running this function on an
    already merged problem returns an identical problem.

    Example:
        milp = combine_loop_vars(milp, N_int)

    Args:
        milp (LinearProgram):
            A MILP returned by add_loop_law_constraints (with loop_info attached).

        N_int (sparse matrix or numpy.ndarray):
            Null space matrix restricted to the reactions in loops (#loop reactions x #cycles).

    Returns:
        (LinearProgram):
        A new, smaller MILP with an updated copy of the LoopInfo attached.

    Raises:
        RuntimeError: If the columns of two merged variables unexpectedly share a constraint.
    """
    loop_info = milp.loop_info
    if loop_info is None or not loop_info.var:
        raise ValueError('The MILP has no loop law variables. Use a MILP returned by add_loop_law_constraints.')
    nint = len(loop_info.var['z'])
    if N_int.shape[0] != nint:
        raise ValueError('N_int has ' + str(N_int.shape[0]) + ' rows, but the MILP has ' + str(nint) + ' reactions in loops.')
    merged = np.zeros(nint, dtype=int) if loop_info.merged is None else loop_info.merged.copy()
    checked_before = parallel_loop_rxns(N_int, merged == 0)

    milp = milp.copy()
    loop_info = milp.loop_info
    AT = milp.A.T.tolil()
    b = np.array(milp.b)
    eq_rows = set(loop_info.con['eq'])
    remove = set()
    for i in np.flatnonzero(checked_before):
        target = abs(checked_before[i]) - 1
        sig = np.sign(checked_before[i])
        # follow earlier merges to the reaction that keeps its variables
        while merged[target] != 0:
            sig *= np.sign(merged[target])
            target = abs(merged[target]) - 1
        z_t, z_i = loop_info.var['z'][target], loop_info.var['z'][i]
        g_t, g_i = loop_info.var['g'][target], loop_info.var['g'][i]
        if _overlap(AT, z_t, z_i, set()) or _overlap(AT, g_t, g_i, eq_rows):
            raise RuntimeError('Trouble combining variables of loop reactions ' + str(target) + ' and ' + str(i) + '.')
        if sig > 0:
            AT[z_t, :] = AT.getrow(z_t) + AT.getrow(z_i)
            AT[g_t, :] = AT.getrow(g_t) + AT.getrow(g_i)
        else:
            AT[z_t, :] = AT.getrow(z_t) - AT.getrow(z_i)
            AT[g_t, :] = AT.getrow(g_t) - AT.getrow(g_i)
            b = b - AT.getrow(z_i).toarray().ravel()
        merged[i] = sig * (target + 1)
        remove.update((z_i, g_i))

    keep = np.array([j not in remove for j in range(milp.num_vars)], dtype=bool)
    new_idx = np.cumsum(keep) - 1
    A = sparse.csr_matrix(AT.T)[:, keep]
    milp.A = sparse.csr_matrix(A)
    milp.b = b.tolist()
    milp.c = [v for v, k in zip(milp.c, keep) if k]
    milp.lb = [v for v, k in zip(milp.lb, keep) if k]
    milp.ub = [v for v, k in zip(milp.ub, keep) if k]
    if milp.vartype is not None:
        milp.vartype = ''.join(v for v, k in zip(milp.vartype, keep) if k)
    if milp.F is not None:
        milp.F = sparse.csr_matrix(milp.F[keep, :][:, keep])
    owner = [k if merged[k] == 0 else abs(merged[k]) - 1 for k in range(nint)]
    loop_info.var['z'] = [int(new_idx[loop_info.var['z'][o]]) for o in owner]
    loop_info.var['g'] = [int(new_idx[loop_info.var['g'][o]]) for o in owner]
    loop_info.merged = merged
    if remove:
        logging.info('Merged the variables of ' + str(len(remove) // 2) + ' reactions in loops.')
    milp.check()
    return milp
