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
"""Class for loop information (LoopInfo) and decoding of loop law variables"""

import numpy as np
from copy import deepcopy
from scipy import sparse
from pandas import DataFrame
from looplaw.names import *


class LoopInfo:
    """A class for storing the data needed for loopless flux calculations

    A LoopInfo object is created once per network and can be passed to subsequent calls of
    add_loop_law_constraints to skip the computation of the null space, the connected components
    and the reaction links. When loop law constraints are added to an LP, the builder stores a copy
    of the LoopInfo in the resulting MILP that additionally contains the indices of all appended
    rows and columns and the big M constants. Indices are 0-based.

    Example:
        loop_info = LoopInfo(N, rxn_in_loops, con_comp)

    Args:
        N (sparse.csc_matrix):
            Null space matrix (#reactions x #cycles). Reactions with an all-zero row are not
            in any loop.

        rxn_in_loops (numpy.ndarray): (Default: None)
            #reactions-by-2 bool matrix. rxn_in_loops[j, 0] is True if the reverse direction of
            reaction j is in a loop, rxn_in_loops[j, 1] is True if the forward direction is.

        con_comp (numpy.ndarray): (Default: None)
            Connected component of each reaction, 0 if the reaction is not in any loop.

        rxn_link (sparse.csr_matrix or str): (Default: None)
            #reactions-by-#reactions matrix, rxn_link[i, j] = 1 if an elementary cycle connects
            reactions i and j. None if not requested, UNAVAILABLE if it could not be computed.

        preprocess (int): (Default: None)
            The preprocessing level the null space was computed with.

    Attributes set by add_loop_law_constraints:
        con (dict):
            Row indices of the constraints 'vU' (v - Mv*a <= 0), 'vL' (v - Mv*a >= -Mv),
            'gU' ((Mg+1)*a + g <= Mg), 'gL' ((Mg+1)*a + g >= 1) and 'eq' (N'*g = 0).

        var (dict):
            Column indices of the binary variables 'z' (a) and the energy variables 'g', one entry
            per reaction in loops.

        rxn_in_loop_ids (numpy.ndarray):
            rxn_in_loop_ids[j] = k means that reaction j is the k-th reaction in loops, its
            variables have the indices var['z'][k] and var['g'][k]. -1 if not in loops.

        merged (numpy.ndarray):
            0 for loop reactions with own variables, k+1 if variables were merged with the ones of
            the k-th loop reaction, -(k+1) if they were merged with opposite sign (a = 1 - a_k, g = -g_k).

        Mv, Mg, BDg (float):
            The big M used in the flux constraints, the big M used in the energy constraints and
            the bound of the energy variables.
    """

    def __init__(self, N, rxn_in_loops=None, con_comp=None, rxn_link=None, preprocess=None):
        self.N = sparse.csc_matrix(N)
        self.rxn_in_loops = None if rxn_in_loops is None else np.asarray(rxn_in_loops, dtype=bool)
        self.con_comp = None if con_comp is None else np.asarray(con_comp, dtype=int)
        self.rxn_link = rxn_link
        self.preprocess = preprocess
        self.con = {}
        self.var = {}
        self.rxn_in_loop_ids = None
        self.merged = None
        self.Mv = None
        self.Mg = None
        self.BDg = None
        n = self.N.shape[0]
        if self.rxn_in_loops is not None and self.rxn_in_loops.shape != (n, 2):
            raise ValueError('rxn_in_loops must be a ' + str(n) + 'x2 matrix.')
        if self.con_comp is not None and self.con_comp.shape != (n,):
            raise ValueError('con_comp must have one entry per reaction (' + str(n) + ').')

    @property
    def num_reacs(self) -> int:
        return self.N.shape[0]

    def in_loops(self) -> np.ndarray:
        """Boolean vector of all reactions with a nonzero row in N"""
        return np.asarray(abs(self.N).sum(axis=1)).ravel() > 0

    def link_available(self) -> bool:
        return self.rxn_link is not None and not isinstance(self.rxn_link, str)

    def copy(self):
        return deepcopy(self)


def decode_loop_solution(x, loop_info, rxn_ids=None) -> DataFrame:
    """Read the values of the binary and energy variables from a solution vector

    Args:
        x (list of float):
            A solution vector of the MILP returned by add_loop_law_constraints (or of
            the merged MILP returned by combine_loop_vars).

        loop_info (LoopInfo):
            The LoopInfo attached to the MILP.

        rxn_ids (optional (list of str)):
            Reaction identifiers used as index of the returned data frame.

    Returns:
        (pandas.DataFrame):
        A data frame with the columns 'indicator' and 'energy' for all reactions in loops.
    """
    if not loop_info.var:
        raise ValueError('LoopInfo does not contain variable indices. Use the LoopInfo attached to the MILP.')
    loop_rxns = np.flatnonzero(loop_info.rxn_in_loop_ids >= 0)
    merged = loop_info.merged if loop_info.merged is not None else np.zeros(len(loop_rxns), dtype=int)
    indicator = []
    energy = []
    for j in loop_rxns:
        k = loop_info.rxn_in_loop_ids[j]
        a = x[loop_info.var['z'][k]]
        g = x[loop_info.var['g'][k]]
        if merged[k] < 0:
            a = 1.0 - a
            g = -g
        indicator.append(round(a))
        energy.append(g)
    index = [rxn_ids[j] for j in loop_rxns] if rxn_ids is not None else list(loop_rxns)
    return DataFrame({"indicator": indicator, "energy": energy}, index=index)
