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
"""Container for (mixed integer) linear problems (LinearProgram)"""

from copy import deepcopy
from typing import Tuple
from numpy import inf
from scipy import sparse
from cobra.util import create_stoichiometric_matrix
from looplaw.names import *


class LinearProgram:
    """A (mixed integer) linear problem in row-sense form

    The problem is stored in the form:
        minimize(osense * c'x),
        subject to:
        A(i,:) * x <csense(i)> b(i),
        lb <= x <= ub,
        forall(j) type(x_j) = vartype(j) (continous, binary),
        optionally with a quadratic objective term x'Fx.

    The same object is used for plain LPs and for the MILPs that are produced
    when loop law constraints are added. In the latter case, vartype is set,
    x0 is an empty list and loop_info holds the LoopInfo that describes the
    appended rows and columns.

    Example:
        lp = LinearProgram(A, b, c, lb, ub, csense='EEL')

    Args:
        A (sparse.csr_matrix):
            Coefficient matrix (num_rows x num_vars).

        b (list of float):
            Right hand sides of all rows.

        c (list of float): (Default: zeros)
            The objective vector.

        lb, ub (list of float): (Default: -inf, inf)
            The lower and upper variable bounds.

        csense (str): (Default: 'E' for all rows)
            (In)equality signs for all rows. 'L'ess or equal, 'E'qual or, 'G'reater or equal
            (e.g.: 'EEGLGLGE').

        osense (int): (Default: 1)
            Objective sense, 1 minimize, -1 maximize.

        F (sparse matrix): (Default: None)
            Quadratic objective term (num_vars x num_vars).

        vartype (str): (Default: None)
            Type of each variable, 'C'ontinuous or 'B'inary. None means all continuous.

        x0 (list): (Default: None)
            Initial solution.

        skip_checks (bool): (Default: False)
            Upon construction, the dimensions of all provided vectors and matrices are checked
            to verify their consistency. If skip_checks=True is set, these checks are skipped.

    Returns:
        (LinearProgram):
        A container for the linear problem.
    """

    def __init__(self, A, b, c=None, lb=None, ub=None, csense=None, osense=1, F=None, vartype=None, x0=None,
                 skip_checks=False):
        self.A = sparse.csr_matrix(A, copy=True)
        numc, numv = self.A.shape
        self.b = [float(v) for v in b]
        self.c = [0.0] * numv if c is None else [float(v) for v in c]
        self.lb = [-inf] * numv if lb is None else [float(v) for v in lb]
        self.ub = [inf] * numv if ub is None else [float(v) for v in ub]
        self.csense = EQUAL * numc if csense is None else ''.join(csense)
        self.osense = osense
        self.F = None if F is None else sparse.csr_matrix(F, copy=True)
        self.vartype = None if vartype is None else ''.join(vartype)
        self.x0 = x0
        self.loop_info = None
        if not skip_checks:
            self.check()

    @property
    def num_vars(self) -> int:
        return self.A.shape[1]

    @property
    def num_constr(self) -> int:
        return self.A.shape[0]

    def check(self):
        """Verify that the dimensions of all vectors and matrices are consistent"""
        numc, numv = self.A.shape
        if len(self.b) != numc or len(self.csense) != numc:
            raise ValueError('Number of rows in A (' + str(numc) + ') does not match length of b (' +
                             str(len(self.b)) + ') or csense (' + str(len(self.csense)) + ').')
        if len(self.c) != numv or len(self.lb) != numv or len(self.ub) != numv:
            raise ValueError('Number of columns in A (' + str(numv) + ') does not match length of c, lb or ub.')
        if any(s not in (EQUAL, LESS, GREATER) for s in self.csense):
            raise ValueError("Constraint senses must be one of 'E', 'L' or 'G'.")
        if self.vartype is not None:
            if len(self.vartype) != numv:
                raise ValueError('Length of vartype (' + str(len(self.vartype)) + ') does not match number of columns (' +
                                 str(numv) + ').')
            if any(t not in (CONTINUOUS, BINARY) for t in self.vartype):
                raise ValueError("Variable types must be 'C' or 'B'.")
        if self.F is not None and self.F.shape != (numv, numv):
            raise ValueError('Quadratic term F must be of size ' + str(numv) + 'x' + str(numv) + '.')

    def row_bounds(self) -> Tuple[list, list]:
        """Translate row senses into paired lower and upper row bounds

        Returns:
            (Tuple):
            b_L, b_U. Lower and upper bounds of all rows (b_L <= A*x <= b_U).
        """
        b_L = [v if s in (EQUAL, GREATER) else -inf for v, s in zip(self.b, self.csense)]
        b_U = [v if s in (EQUAL, LESS) else inf for v, s in zip(self.b, self.csense)]
        return b_L, b_U

    def to_ineq_eq(self) -> Tuple[sparse.csr_matrix, list, sparse.csr_matrix, list, list, list, list, str]:
        """Translate problem into the form A_ineq*x <= b_ineq, A_eq*x = b_eq

        'G'-rows are multiplied by -1. The objective is returned as a minimization.

        Returns:
            (Tuple):
            A_ineq, b_ineq, A_eq, b_eq, lb, ub, c, vtype
        """
        eq = [i for i, s in enumerate(self.csense) if s == EQUAL]
        le = [i for i, s in enumerate(self.csense) if s == LESS]
        ge = [i for i, s in enumerate(self.csense) if s == GREATER]
        A_eq = self.A[eq, :]
        b_eq = [self.b[i] for i in eq]
        A_ineq = sparse.vstack((self.A[le, :], -self.A[ge, :]), format='csr')
        b_ineq = [self.b[i] for i in le] + [-self.b[i] for i in ge]
        c = [self.osense * v for v in self.c]
        vtype = CONTINUOUS * self.num_vars if self.vartype is None else self.vartype
        return A_ineq, b_ineq, A_eq, b_eq, list(self.lb), list(self.ub), c, vtype

    def copy(self):
        return deepcopy(self)


def build_lp_from_model(model, c=None) -> LinearProgram:
    """Build the flux balance LP of a constraint-based model

    The LP has the form S*v = 0, lb <= v <= ub with one column per reaction and one
    row per metabolite.

    Args:
        model (cobra.Model):
            A metabolic model that is an instance of the cobra.Model class.

        c (optional (list of float)):
            Objective coefficient vector. By default, the reactions' objective coefficients
            are used.

    Returns:
        (LinearProgram):
        The flux balance LP. osense follows the model's objective direction.
    """
    S = sparse.csr_matrix(create_stoichiometric_matrix(model))
    if c is None:
        c = [r.objective_coefficient for r in model.reactions]
    osense = -1 if model.objective_direction == 'max' else 1
    lb = [r.lower_bound for r in model.reactions]
    ub = [r.upper_bound for r in model.reactions]
    return LinearProgram(S, [0.0] * S.shape[0], c, lb, ub, EQUAL * S.shape[0], osense)
