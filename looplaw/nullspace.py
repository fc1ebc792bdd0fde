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
"""Null space bases of the internal cycles of metabolic networks

The functions in this module compute a matrix N (#reactions x #cycles) whose columns span the
space of internal (closed) cycles of a network. Three strategies are available and are selected
with the preprocessing level:

    1: The null space of the non-transport reactions (Schellenberger et al., 2009).
    2: A sparse null space found with the Fast-SNP heuristic (Saa and Nielsen, 2016).
    3: The loop participation of each reaction in the closed network together with a sparse
       null space of the feasible loop directions (Chan et al., 2017). An exact minimal null
       space can be plugged in through a custom provider.
"""

import logging
import numpy as np
from typing import Tuple
from scipy import sparse
from scipy.optimize import linprog
from cobra import Configuration
from cobra.util import create_stoichiometric_matrix
from looplaw.names import *


def sparse_null(S, tol=1e-10) -> sparse.csc_matrix:
    """Null space basis from the reduced row echelon form

    Every free column of S contributes one basis vector with a 1 at its own position, so that
    the basis of a block diagonal matrix never mixes blocks.

    Args:
        S (sparse matrix or numpy.ndarray):
            The matrix (#rows x #columns).

        tol (float): (Default: 1e-10)
            Values below this threshold are treated as zero.

    Returns:
        (sparse.csc_matrix):
        N with S*N = 0 (#columns x dimension of the null space).
    """
    A = S.toarray() if sparse.issparse(S) else np.array(S, dtype=float)
    A = A.astype(float)
    m, n = A.shape
    pivots = []
    row = 0
    for col in range(n):
        if row >= m:
            break
        p = row + int(np.argmax(np.abs(A[row:, col])))
        if abs(A[p, col]) <= tol:
            A[row:, col] = 0.0
            continue
        A[[row, p]] = A[[p, row]]
        A[row] = A[row] / A[row, col]
        others = np.arange(m) != row
        A[others] -= np.outer(A[others, col], A[row])
        pivots.append(col)
        row += 1
    free = [j for j in range(n) if j not in set(pivots)]
    N = np.zeros((n, len(free)))
    for k, f in enumerate(free):
        N[f, k] = 1.0
        N[pivots, k] = -A[:len(pivots), f]
    N[np.abs(N) < tol] = 0.0
    return sparse.csc_matrix(N)


def nontransport_reactions(S) -> np.ndarray:
    """Reactions with more than one nonzero stoichiometric coefficient"""
    S = sparse.csc_matrix(S)
    return np.diff(S.indptr) > 1


def check_orthogonality(S, N, tol=NULL_TOL):
    """Verify that the null space matrix only spans internal cycles of S

    Raises:
        ValueError: If the rows of S restricted to the reactions in loops multiplied with N
            deviate from zero.
    """
    S = sparse.csc_matrix(S)
    N = sparse.csc_matrix(N)
    if N.shape[0] != S.shape[1]:
        raise ValueError('Null space matrix has ' + str(N.shape[0]) + ' rows, but the model has ' + str(S.shape[1]) +
                         ' reactions.')
    in_loops = np.asarray(abs(N).sum(axis=1)).ravel() > 0
    if N.shape[1] == 0 or not any(in_loops):
        return
    residual = abs(S[:, in_loops] @ N[in_loops, :])
    if residual.nnz and residual.max() > tol:
        raise ValueError('Null space matrix violates steady state (max. residual ' + str(residual.max()) + ').')


def internal_nullspace(model) -> sparse.csc_matrix:
    """Null space of the non-transport reactions (preprocessing level 1)

    Blocked reactions (lb = ub = 0) and reactions that cannot carry steady state flux are
    excluded before the null space of the remaining non-transport reactions is computed.

    Args:
        model (cobra.Model):
            A metabolic model that is an instance of the cobra.Model class.

    Returns:
        (sparse.csc_matrix):
        Null space matrix N (#reactions x #cycles).
    """
    S = sparse.csc_matrix(create_stoichiometric_matrix(model))
    numr = S.shape[1]
    blocked = np.array([r.lower_bound == 0 and r.upper_bound == 0 for r in model.reactions], dtype=bool)
    nontransport = nontransport_reactions(S) | blocked
    active = ~blocked
    N = np.zeros((numr, 0))
    if any(active):
        N_active = sparse_null(S[:, active])
        N = np.zeros((numr, N_active.shape[1]))
        N[active, :] = N_active.toarray()
    nontransport = nontransport & np.any(np.abs(N) > NULL_TOL, axis=1)
    N_int = sparse_null(S[:, nontransport])
    N = np.zeros((numr, N_int.shape[1]))
    N[nontransport, :] = N_int.toarray()
    return sparse.csc_matrix(N)


def _closed_network(model):
    """Stoichiometric matrix and bounds of the network with all transport reactions closed

    Bounds are relaxed to include zero. Loop participation depends on the admissible directions,
    not on forced flux (e.g., a maintenance reaction with lb > 0).
    """
    S = sparse.csc_matrix(create_stoichiometric_matrix(model))
    lb = np.minimum([r.lower_bound for r in model.reactions], 0.0).astype(float)
    ub = np.maximum([r.upper_bound for r in model.reactions], 0.0).astype(float)
    internal = nontransport_reactions(S) & ~((lb == 0) & (ub == 0))
    return S, lb, ub, internal


def find_rxns_in_loops(model) -> np.ndarray:
    """Determine which reaction directions can be part of an internal loop

    A flux variability analysis of the closed network (all transport reactions fixed to zero)
    is carried out with linprog. Every flux that can be attained without exchange with the
    environment is part of a loop.

    Args:
        model (cobra.Model):
            A metabolic model that is an instance of the cobra.Model class.

    Returns:
        (numpy.ndarray):
        #reactions-by-2 bool matrix. Column 0: reverse direction in loops, column 1: forward
        direction in loops.
    """
    S, lb, ub, internal = _closed_network(model)
    rxn_in_loops = np.zeros((S.shape[1], 2), dtype=bool)
    idx = np.flatnonzero(internal)
    if len(idx) == 0:
        return rxn_in_loops
    S_int = S[:, idx]
    bounds = [(None if np.isinf(l) else l, None if np.isinf(u) else u) for l, u in zip(lb[idx], ub[idx])]
    b_eq = np.zeros(S_int.shape[0])
    for k, j in enumerate(idx):
        for col, sig in ((1, -1.0), (0, 1.0)):
            if (sig < 0 and ub[j] <= 0) or (sig > 0 and lb[j] >= 0):
                continue
            c = np.zeros(len(idx))
            c[k] = sig
            res = linprog(c, A_eq=S_int, b_eq=b_eq, bounds=bounds, method='highs')
            if res.status == 3 or (res.status == 0 and -res.fun > NULL_TOL):
                rxn_in_loops[j, col] = True
    return rxn_in_loops


def fast_snp(model, rxn_in_loops=None, seed=None) -> sparse.csc_matrix:
    """Sparse null space with the Fast-SNP heuristic (preprocessing level 2)

    Iteratively draws a random weight vector w orthogonal to all basis vectors found so far and
    solves min ||v||_1 s.t. S*v = 0, w'v >= 1 (or w'v <= -1) over the internal reactions. The
    solution is a new, linearly independent and sparse basis vector. The iteration stops when
    both problems are infeasible.

    Args:
        model (cobra.Model):
            A metabolic model that is an instance of the cobra.Model class.

        rxn_in_loops (optional (numpy.ndarray)):
            #reactions-by-2 bool matrix of admissible loop directions. By default, all directions
            of non-transport reactions that are admitted by the reaction bounds are used.

        seed (optional (int)):
            Seed of the random weight vectors.

    Returns:
        (sparse.csc_matrix):
        Null space matrix N (#reactions x #cycles).
    """
    S, lb, ub, internal = _closed_network(model)
    numr = S.shape[1]
    if rxn_in_loops is None:
        rev = internal & (lb < 0)
        fwd = internal & (ub > 0)
    else:
        rev = np.asarray(rxn_in_loops, dtype=bool)[:, 0]
        fwd = np.asarray(rxn_in_loops, dtype=bool)[:, 1]
    idx = np.flatnonzero(rev | fwd)
    k = len(idx)
    if k == 0:
        return sparse.csc_matrix((numr, 0))
    cobra_conf = Configuration()
    bound_thres = max((abs(cobra_conf.lower_bound), abs(cobra_conf.upper_bound)))
    S_int = S[:, idx]
    A_eq = sparse.hstack((S_int, -S_int), format='csc')
    b_eq = np.zeros(S_int.shape[0])
    bounds = [(0, bound_thres if fwd[j] else 0) for j in idx] + [(0, bound_thres if rev[j] else 0) for j in idx]
    rng = np.random.default_rng(seed)
    basis = []
    while len(basis) < k:
        w = rng.standard_normal(k)
        if basis:
            Q, _ = np.linalg.qr(np.column_stack(basis))
            w = w - Q @ (Q.T @ w)
        if np.linalg.norm(w) < 1e-9:
            break
        w = w / np.linalg.norm(w)
        v = None
        for sig in (1.0, -1.0):
            res = linprog(np.ones(2 * k),
                          A_ub=-sig * np.concatenate((w, -w)).reshape(1, -1),
                          b_ub=[-1.0],
                          A_eq=A_eq,
                          b_eq=b_eq,
                          bounds=bounds,
                          method='highs')
            if res.status == 0:
                v = res.x[:k] - res.x[k:]
                break
        if v is None:
            break
        v[np.abs(v) < 1e-9] = 0.0
        v = v / np.max(np.abs(v))
        if basis:
            # numerically dependent vector, the cycle space is exhausted
            residual = v - Q @ (Q.T @ v)
            if np.linalg.norm(residual) < NULL_TOL:
                break
        basis.append(v)
    N = np.zeros((numr, len(basis)))
    if basis:
        N[idx, :] = np.column_stack(basis)
    N[np.abs(N) < 1e-9] = 0.0
    return sparse.csc_matrix(N)


def min_feasible_nullspace(model, seed=None) -> Tuple[np.ndarray, sparse.csc_matrix]:
    """Loop participation and a sparse null space of the feasible loop directions (level 3)

    Returns:
        (Tuple):
        rxn_in_loops, N
    """
    rxn_in_loops = find_rxns_in_loops(model)
    N = fast_snp(model, rxn_in_loops, seed)
    return rxn_in_loops, N


def _loop_flags_from_basis(model, N) -> np.ndarray:
    in_loops = np.asarray(abs(sparse.csc_matrix(N)).sum(axis=1)).ravel() > 0
    lb = np.array([r.lower_bound for r in model.reactions], dtype=float)
    ub = np.array([r.upper_bound for r in model.reactions], dtype=float)
    return np.column_stack((in_loops & (lb < 0), in_loops & (ub > 0)))


def _nullspace_strategy(model, seed):
    return internal_nullspace(model), None


def _fast_snp_strategy(model, seed):
    return fast_snp(model, seed=seed), None


def _min_nullspace_strategy(model, seed):
    logging.info('Computing loop participation by FVA and a sparse null space with Fast-SNP.')
    rxn_in_loops, N = min_feasible_nullspace(model, seed)
    return N, rxn_in_loops


NULLSPACE_STRATEGIES = {
    NULLSPACE: _nullspace_strategy,
    FAST_SNP: _fast_snp_strategy,
    MIN_NULLSPACE: _min_nullspace_strategy,
    EFM_LINKS: _min_nullspace_strategy,
}


def find_cycle_basis(model, preprocess=MIN_NULLSPACE, nullspace_provider=None, seed=None) -> \
        Tuple[sparse.csc_matrix, np.ndarray]:
    """Compute the null space matrix of the internal cycles with the selected strategy

    Args:
        model (cobra.Model):
            A metabolic model that is an instance of the cobra.Model class.

        preprocess (int): (Default: 3)
            The preprocessing level (1, 2, 3 or 4, see module description). Levels 3 and 4
            also return the loop participation of all reactions.

        nullspace_provider (optional (callable)):
            A custom strategy, called as nullspace_provider(model). It must return N or a tuple
            (N, rxn_in_loops). If rxn_in_loops is missing for levels >= 3, it is derived from
            the nonzero rows of N and the reaction bounds.

        seed (optional (int)):
            Seed for the randomized Fast-SNP strategy.

    Returns:
        (Tuple):
        N, rxn_in_loops (None for levels 1 and 2).
    """
    if preprocess not in PREPROCESS_LEVELS:
        raise ValueError('Preprocessing level ' + str(preprocess) + ' unknown. Use one of ' + str(PREPROCESS_LEVELS) + '.')
    if nullspace_provider is not None:
        result = nullspace_provider(model)
        if isinstance(result, tuple):
            N, rxn_in_loops = result
        else:
            N, rxn_in_loops = result, None
        N = sparse.csc_matrix(N)
    else:
        N, rxn_in_loops = NULLSPACE_STRATEGIES[preprocess](model, seed)
    check_orthogonality(create_stoichiometric_matrix(model), N)
    if preprocess >= MIN_NULLSPACE and rxn_in_loops is None:
        rxn_in_loops = _loop_flags_from_basis(model, N)
    if preprocess < MIN_NULLSPACE:
        rxn_in_loops = None
    return N, rxn_in_loops


def find_mets_in_loops(model, rxn_in_loops=None) -> list:
    """Identify all metabolites that take part in internal loops

    Args:
        model (cobra.Model):
            A metabolic model that is an instance of the cobra.Model class.

        rxn_in_loops (optional (numpy.ndarray)):
            #reactions-by-2 bool matrix of loop directions. Computed with find_rxns_in_loops
            if not provided.

    Returns:
        (list of str):
        Identifiers of the metabolites that are consumed or produced by reactions in loops.
    """
    if rxn_in_loops is None:
        rxn_in_loops = find_rxns_in_loops(model)
    S = sparse.csr_matrix(create_stoichiometric_matrix(model))
    in_loops = np.any(np.asarray(rxn_in_loops, dtype=bool), axis=1)
    touched = np.asarray(abs(S[:, in_loops]).sum(axis=1)).ravel() > 0
    return [m.id for m, t in zip(model.metabolites, touched) if t]
