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
"""Functions for adding loop law constraints to LPs (loopless FBA)"""

import logging
import numpy as np
from scipy import sparse
from typing import List, Tuple
from looplaw import LinearProgram, LoopInfo, find_cycle_basis, connected_rxns_in_nullspace, get_rxn_link, \
                    combine_loop_vars
from looplaw.names import *


def find_loop_info(model, preprocess=MIN_NULLSPACE, **kwargs) -> LoopInfo:
    """Compute the loop information of a metabolic network

    Runs the null space strategy selected by the preprocessing level and, for levels >= 3, the
    connected components of reactions in loops. Level 4 additionally links reactions in loops
    through elementary cycles. The result can be passed to add_loop_law_constraints repeatedly
    (e.g., for different objective reactions) to skip all recomputation.

    Example:
        loop_info = find_loop_info(model, preprocess=4)

    Args:
        model (cobra.Model):
            A metabolic model that is an instance of the cobra.Model class.

        preprocess (int): (Default: 3)
            1: use the null space of the internal reactions (Schellenberger et al., 2009),
            2: use a sparse null space found by Fast-SNP (Saa and Nielsen, 2016),
            3: use loop directions and a sparse null space of the feasible loops and compute
            connected components (Chan et al., 2017),
            4: option 3 + find the reactions in loops that are connected by EFMs for localized
            loopless constraints (Chan et al., 2017).

        nullspace_provider (optional (callable)):
            Custom null space strategy, see find_cycle_basis.

        efm_enumerator (optional (callable)):
            Custom EFM enumerator, see get_rxn_link.

        efm_path (optional (str)):
            Working directory for the EFM enumerator.

        seed (optional (int)):
            Seed for the Fast-SNP heuristic.

    Returns:
        (LoopInfo):
        Loop information with null space, loop directions, connected components and reaction links.
    """
    allowed_keys = {NULLSPACE_PROVIDER, EFM_ENUMERATOR, EFM_PATH, SEED}
    for key in kwargs.keys():
        if key not in allowed_keys:
            raise ValueError("Key " + key + " is not supported.")
    N, rxn_in_loops = find_cycle_basis(model, preprocess, kwargs.get(NULLSPACE_PROVIDER), kwargs.get(SEED))
    con_comp = None
    rxn_link = None
    if preprocess >= MIN_NULLSPACE:
        con_comp = connected_rxns_in_nullspace(N)
    if preprocess >= EFM_LINKS:
        rxn_link = get_rxn_link(model, con_comp, rxn_in_loops, kwargs.get(EFM_ENUMERATOR), kwargs.get(EFM_PATH))
    loop_info = LoopInfo(N, rxn_in_loops, con_comp, rxn_link, preprocess)
    logging.info('Found ' + str(np.count_nonzero(loop_info.in_loops())) + ' reactions in ' + str(N.shape[1]) +
                 ' independent loops' + ('' if con_comp is None else ' and ' + str(con_comp.max(initial=0)) +
                                         ' connected components') + '.')
    return loop_info


def check_rxn_index(lp, model, rxn_index=None) -> List[int]:
    """Verify the association of model reactions with LP columns

    Args:
        lp (LinearProgram):
            The LP.

        model (cobra.Model):
            The metabolic model.

        rxn_index (optional (list of int)):
            The (0-based) LP column of each model reaction. By default, the first columns
            of the LP are assumed to be the reaction fluxes.

    Returns:
        (list of int):
        The LP column of each reaction.

    Raises:
        ValueError: If rxn_index is malformed, out of bounds or does not match the model.
    """
    numr = len(model.reactions)
    numv = lp.num_vars
    if rxn_index is None:
        if numv == numr:
            return list(range(numr))
        elif numv > numr:
            logging.warning('Extra variables in LP. Assuming that the first ' + str(numr) + ' correspond to fluxes.')
            return list(range(numr))
        else:
            raise ValueError('LP must have at least as many variables (' + str(numv) + ') as the model has reactions (' +
                             str(numr) + ').')
    rxn_index = list(rxn_index)
    if len(rxn_index) != numr:
        raise ValueError('rxn_index must contain exactly ' + str(numr) + ' entries.')
    if any(isinstance(i, bool) or not isinstance(i, (int, np.integer)) for i in rxn_index):
        raise ValueError('rxn_index must contain integer column indices.')
    if any(i < 0 or i >= numv for i in rxn_index):
        raise ValueError('rxn_index out of bounds.')
    if len(set(rxn_index)) != numr:
        raise ValueError('rxn_index contains duplicate entries.')
    return [int(i) for i in rxn_index]


def loop_law_blocks(rxn_cols, numv, N_int, Mv=MV_DEFAULT, Mg=MG_DEFAULT) -> \
        Tuple[sparse.csr_matrix, list, str]:
    """Rows of the loop law for a set of reaction columns

    For each reaction in loops, one binary variable a and one energy variable g are appended
    after the numv existing columns ([a_1..a_nint, g_1..g_nint]). The rows are, in this order:
        v - Mv*a <= 0            (vU)
        v - Mv*a >= -Mv          (vL)
        (Mg+1)*a + g <= Mg       (gU)
        (Mg+1)*a + g >= 1        (gL)
        N_int'*g = 0             (eq)
    a = 1 forces v >= 0 and g in [-Mg, -1], a = 0 forces v <= 0 and g in [1, Mg].

    Args:
        rxn_cols (list of int):
            LP columns of the reactions in loops.

        numv (int):
            Number of columns of the LP.

        N_int (sparse matrix):
            Null space matrix restricted to the reactions in loops (#loop reactions x #cycles).

        Mv, Mg (float):
            Big M for the flux and the energy constraints.

    Returns:
        (Tuple):
        A_loop (4*nint + #cycles x numv + 2*nint), b_loop, csense_loop
    """
    nint = len(rxn_cols)
    lint = N_int.shape[1]
    temp = sparse.csr_matrix(([1.0] * nint, (range(nint), rxn_cols)), shape=(nint, numv))
    eye = sparse.identity(nint, format='csr')
    zero = sparse.csr_matrix((nint, nint))
    A_loop = sparse.bmat([[temp, -Mv * eye, zero],
                          [temp, -Mv * eye, zero],
                          [sparse.csr_matrix((nint, numv)), (Mg + 1) * eye, eye],
                          [sparse.csr_matrix((nint, numv)), (Mg + 1) * eye, eye],
                          [sparse.csr_matrix((lint, numv)), sparse.csr_matrix((lint, nint)), sparse.csr_matrix(N_int).T]],
                         format='csr')
    b_loop = [0.0] * nint + [-float(Mv)] * nint + [float(Mg)] * nint + [1.0] * nint + [0.0] * lint
    csense_loop = LESS * nint + GREATER * nint + LESS * nint + GREATER * nint + EQUAL * lint
    return A_loop, b_loop, csense_loop


def add_loop_law_constraints(lp, model, rxn_index=None, preprocess=MIN_NULLSPACE, loop_info=None, **kwargs) -> \
        Tuple[LinearProgram, LoopInfo]:
    """Add loop law constraints to an LP or MILP

    The loop law forbids flux through internal cycles without a thermodynamic driving force. For
    every reaction in loops, a binary variable fixes the flux direction and an energy variable
    with the opposite sign is introduced. The energies of all reactions in a cycle must sum up to
    zero (N'*g = 0), which is impossible if all reactions of a cycle carry flux in the same
    direction. The resulting MILP has 2*nint more columns and 4*nint + #cycles more rows than the
    input problem (nint: number of reactions in loops).

    Example:
        milp, loop_info = add_loop_law_constraints(lp, model, preprocess=3)

    Args:
        lp (LinearProgram):
            The LP (or MILP) the loop law is added to. Existing variable types are kept, a
            quadratic term F is embedded into the larger problem.

        model (cobra.Model):
            The metabolic model the LP is built from.

        rxn_index (optional (list of int)): (Default: first columns)
            The (0-based) LP column of each model reaction.

        preprocess (int): (Default: 3)
            Preprocessing level of the null space computation (see find_loop_info). Ignored if
            loop_info is provided.

        loop_info (optional (LoopInfo)):
            Previously computed loop information. It is not modified.

        encoding (optional (str)): (Default: 'single_indicator')
            Formulation of the loop law. Only 'single_indicator' (one binary variable per
            reaction) is supported. 'split_indicators' (separate forward and reverse binaries)
            and 'ranged_rows' (paired lower and upper row bounds) are historical formulations.

        combine_vars (optional (bool)): (Default: False)
            Merge the variables of reactions with (anti-)parallel rows in the null space,
            see combine_loop_vars.

        Mv, Mg, BDg (optional (float)): (Default: 10000, 100, 1000)
            Big M of the flux constraints, big M of the energy constraints and the bound of the
            energy variables. Mv must exceed all feasible flux rates, otherwise flux ranges
            are truncated.

        nullspace_provider, efm_enumerator, efm_path, seed (optional):
            Passed to find_loop_info.

    Returns:
        (Tuple):
        milp, loop_info. The MILP (LinearProgram with vartype and x0 = []) and a copy of the
        loop information with the indices of all new rows and columns.

    Raises:
        ValueError: If the reaction index, the LP dimensions or the configuration are invalid.
    """
    allowed_keys = {ENCODING, COMBINE_VARS, MV, MG, BDG, NULLSPACE_PROVIDER, EFM_ENUMERATOR, EFM_PATH, SEED}
    for key in kwargs.keys():
        if key not in allowed_keys:
            raise ValueError("Key " + key + " is not supported.")
    encoding = kwargs.get(ENCODING, SINGLE_INDICATOR)
    if encoding not in ENCODINGS:
        raise ValueError('Encoding ' + str(encoding) + ' unknown. Use one of ' + str(ENCODINGS) + '.')
    if encoding != SINGLE_INDICATOR:
        raise ValueError('Encoding ' + encoding + ' is a historical formulation and not supported. Use ' +
                         SINGLE_INDICATOR + '.')
    Mv = kwargs.get(MV, MV_DEFAULT)
    Mg = kwargs.get(MG, MG_DEFAULT)
    BDg = kwargs.get(BDG, BDG_DEFAULT)
    if min(Mv, Mg, BDg) <= 0:
        raise ValueError('Mv, Mg and BDg must be positive.')
    lp.check()
    rxn_cols = check_rxn_index(lp, model, rxn_index)

    if loop_info is None:
        preprocess_keys = {NULLSPACE_PROVIDER, EFM_ENUMERATOR, EFM_PATH, SEED}
        loop_info = find_loop_info(model, preprocess, **{k: v for k, v in kwargs.items() if k in preprocess_keys})
    else:
        loop_info = loop_info.copy()
    if loop_info.num_reacs != len(model.reactions):
        raise ValueError('Null space matrix has ' + str(loop_info.num_reacs) + ' rows, but the model has ' +
                         str(len(model.reactions)) + ' reactions.')

    nontransport = loop_info.in_loops()
    if loop_info.rxn_in_loops is not None:
        excluded = nontransport & ~np.any(loop_info.rxn_in_loops, axis=1)
        if any(excluded):
            logging.warning(str(np.count_nonzero(excluded)) + ' reactions in the null space are not in loops in any '
                            'direction and are excluded.')
        nontransport = nontransport & ~excluded
    N_int = sparse.csc_matrix(loop_info.N)[np.flatnonzero(nontransport), :]
    nint = int(np.count_nonzero(nontransport))
    lint = N_int.shape[1]
    m, n = lp.A.shape
    loop_cols = [rxn_cols[j] for j in np.flatnonzero(nontransport)]

    bounds = [abs(lp.lb[j]) for j in loop_cols if not np.isinf(lp.lb[j])] + \
             [abs(lp.ub[j]) for j in loop_cols if not np.isinf(lp.ub[j])]
    if bounds and max(bounds) > Mv:
        logging.warning('Flux bounds of reactions in loops (up to ' + str(max(bounds)) + ') exceed Mv (' + str(Mv) +
                        '). Feasible flux ranges will be truncated.')
    unbounded = [j for j in loop_cols if np.isinf(lp.lb[j]) or np.isinf(lp.ub[j])]
    if unbounded:
        logging.warning(str(len(unbounded)) + ' reactions in loops are unbounded. Their fluxes will be limited to ' +
                        '[-Mv, Mv] (Mv = ' + str(Mv) + ').')

    loop_info.con = {
        'vU': list(range(m, m + nint)),
        'vL': list(range(m + nint, m + 2 * nint)),
        'gU': list(range(m + 2 * nint, m + 3 * nint)),
        'gL': list(range(m + 3 * nint, m + 4 * nint)),
        'eq': list(range(m + 4 * nint, m + 4 * nint + lint)),
    }
    loop_info.var = {'z': list(range(n, n + nint)), 'g': list(range(n + nint, n + 2 * nint))}
    loop_info.rxn_in_loop_ids = np.full(loop_info.num_reacs, -1, dtype=int)
    loop_info.rxn_in_loop_ids[nontransport] = np.arange(nint)
    loop_info.merged = np.zeros(nint, dtype=int)
    loop_info.Mv = Mv
    loop_info.Mg = Mg
    loop_info.BDg = BDg

    vartype = CONTINUOUS * n if lp.vartype is None else lp.vartype
    if nint == 0:
        logging.warning('No reactions in loops. No loop law constraints added.')
        milp = LinearProgram(lp.A, lp.b, lp.c, lp.lb, lp.ub, lp.csense, lp.osense, lp.F, vartype, [])
        milp.loop_info = loop_info
        return milp, loop_info

    A_loop, b_loop, csense_loop = loop_law_blocks(loop_cols, n, N_int, Mv, Mg)
    A = sparse.vstack((sparse.hstack((lp.A, sparse.csr_matrix((m, 2 * nint)))), A_loop), format='csr')
    F = None
    if lp.F is not None:  # used in QP problems
        F = sparse.bmat([[lp.F, None], [None, sparse.csr_matrix((2 * nint, 2 * nint))]], format='csr')
    milp = LinearProgram(A,
                         lp.b + b_loop,
                         lp.c + [0.0] * 2 * nint,
                         lp.lb + [0.0] * nint + [-float(BDg)] * nint,
                         lp.ub + [1.0] * nint + [float(BDg)] * nint,
                         lp.csense + csense_loop,
                         lp.osense,
                         F,
                         vartype + BINARY * nint + CONTINUOUS * nint,
                         [])
    milp.loop_info = loop_info
    logging.info('Added loop law constraints for ' + str(nint) + ' reactions in ' + str(lint) + ' loops.')

    if kwargs.get(COMBINE_VARS, False):
        milp = combine_loop_vars(milp, N_int)
        loop_info = milp.loop_info
    return milp, loop_info
