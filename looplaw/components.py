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
"""Connected components of reactions in loops and localization of loop information"""

import logging
import numpy as np
from scipy import sparse
from cobra.util import create_stoichiometric_matrix
from looplaw import LoopInfo, sparse_null
from looplaw.names import *


def connected_rxns_in_nullspace(N) -> np.ndarray:
    """Find the connected components of reactions in loops

    Two reactions are connected if they have nonzero entries in a common column of the null
    space matrix. Loop law constraints are required only for the connected components that
    contain reactions that should be free of loops, since cycles never span two components.

    Example:
        con_comp = connected_rxns_in_nullspace(N)

    Args:
        N (sparse.csc_matrix):
            Null space matrix (#reactions x #cycles).

    Returns:
        (numpy.ndarray):
        Component of each reaction. Reactions in the same component have the same
        con_comp[j] > 0. Reactions not in any loop have con_comp[j] = 0.
    """
    B = sparse.csr_matrix(sparse.csc_matrix(N) != 0, dtype=int)
    BT = B.T.tocsr()
    in_null = np.diff(B.indptr) > 0
    con_comp = np.zeros(B.shape[0], dtype=int)
    num_con = 0
    while any((con_comp == 0) & in_null):
        v_cur = np.zeros(B.shape[0], dtype=bool)
        v_cur[np.flatnonzero((con_comp == 0) & in_null)[0]] = True
        num_con += 1
        num_cur = 0
        while num_cur < np.count_nonzero(v_cur):
            num_cur = np.count_nonzero(v_cur)
            cols = np.asarray(B[v_cur].sum(axis=0)).ravel() > 0
            v_cur |= np.asarray(BT[cols].sum(axis=0)).ravel() > 0
        con_comp[v_cur] = num_con
    return con_comp


def localize_loop_info(loop_info, model, rxns) -> LoopInfo:
    """Restrict loop information to the loops that involve a set of target reactions

    Only reactions that share a loop with at least one target reaction need loop law
    constraints. If reaction links are available, the reactions linked to the targets by an
    elementary cycle are kept. Otherwise, the whole connected components of the targets are
    kept.

    Example:
        local_info = localize_loop_info(loop_info, model, ['PGI', 'PFK'])

    Args:
        loop_info (LoopInfo):
            Loop information with connected components (preprocessing level >= 3).

        model (cobra.Model):
            The metabolic model the loop information was computed for.

        rxns (list of str or int):
            Reaction identifiers or indices of the target reactions.

    Returns:
        (LoopInfo):
        A new LoopInfo with a null space matrix that only covers the kept reactions.
    """
    if loop_info.con_comp is None:
        raise ValueError('Localization requires connected components (preprocessing level >= 3).')
    reaction_ids = model.reactions.list_attr("id")
    targets = [reaction_ids.index(r) if isinstance(r, str) else int(r) for r in rxns]
    numr = loop_info.num_reacs
    keep = np.zeros(numr, dtype=bool)
    if loop_info.link_available():
        link = sparse.csr_matrix(loop_info.rxn_link)
        for t in targets:
            keep[link[t].indices] = True
    else:
        comps = {loop_info.con_comp[t] for t in targets} - {0}
        keep = np.isin(loop_info.con_comp, list(comps))
    N = sparse.csc_matrix(loop_info.N)
    support = sparse.csc_matrix(N != 0, dtype=int)
    outside = np.asarray(support[~keep, :].sum(axis=0)).ravel() > 0
    inside = np.asarray(support[keep, :].sum(axis=0)).ravel() > 0
    cols = inside & ~outside
    if any(keep) and not all(cols == inside):
        # linked reactions cut through basis vectors, use the cycles of the kept reactions only
        logging.info('Recomputing null space for ' + str(np.count_nonzero(keep)) + ' linked reactions.')
        S = sparse.csc_matrix(create_stoichiometric_matrix(model))
        N_keep = sparse_null(S[:, keep])
        N_loc = np.zeros((numr, N_keep.shape[1]))
        N_loc[keep, :] = N_keep.toarray()
        N_loc = sparse.csc_matrix(N_loc)
    else:
        N_loc = N[:, np.flatnonzero(cols)]
    in_loops = np.asarray(abs(N_loc).sum(axis=1)).ravel() > 0
    rxn_in_loops = None
    if loop_info.rxn_in_loops is not None:
        rxn_in_loops = loop_info.rxn_in_loops & in_loops[:, None]
    con_comp = np.where(in_loops, loop_info.con_comp, 0)
    rxn_link = loop_info.rxn_link
    if loop_info.link_available():
        D = sparse.diags(in_loops.astype(float))
        rxn_link = sparse.csr_matrix(D @ sparse.csr_matrix(loop_info.rxn_link) @ D)
        rxn_link.eliminate_zeros()
    return LoopInfo(N_loc, rxn_in_loops, con_comp, rxn_link, loop_info.preprocess)
