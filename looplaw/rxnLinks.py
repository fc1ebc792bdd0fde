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
"""Links between reactions in loops by elementary flux modes (efmtool)

The elementary modes are enumerated with efmtool, a Java program that is called through the
efmtool Python package. Calls are made strictly one after another, since calling the Java
bridge too rapidly has caused problems. The working directory is changed to the efmtool
installation for each call and restored afterwards.
"""

import logging
import os
import time
import traceback
import numpy as np
from importlib.util import find_spec as module_exists
from scipy import sparse
from cobra.util import create_stoichiometric_matrix
from looplaw.names import *


class WorkingDirectory():
    """Environment in which the current working directory is changed

    The previous working directory is restored when the environment is left, also
    if an exception was raised.

    Example:
        with WorkingDirectory('/opt/efmtool'):
            efms = calculate()

    Args:
        path (str):
            The working directory inside the environment. None leaves it unchanged.
    """

    def __init__(self, path):
        self.path = path
        self.prev = None

    def __enter__(self):
        self.prev = os.getcwd()
        if self.path:
            os.chdir(self.path)
        return self

    def __exit__(self, exit_type, exit_value, exit_traceback):
        os.chdir(self.prev)


def efmtool_available() -> bool:
    """Check if the efmtool package is installed without importing it"""
    return module_exists("efmtool") is not None


def efmtool_path() -> str:
    """Directory of the efmtool installation"""
    return os.path.dirname(module_exists("efmtool").origin)


def efmtool_sign_modes(stoich, reversibilities) -> np.ndarray:
    """Enumerate elementary flux modes with efmtool and return their sign patterns

    efmtool returns the flux values of all modes. They are reduced to their signs after the
    enumeration, only the support of each mode is used for the reaction links.

    Args:
        stoich (numpy.ndarray):
            Stoichiometric matrix (#metabolites x #reactions).

        reversibilities (list of int):
            1 for reversible, 0 for irreversible reactions.

    Returns:
        (numpy.ndarray):
        Sign patterns of all elementary modes (#reactions x #modes), entries -1, 0 or 1.
    """
    import efmtool
    options = efmtool.get_default_options()
    options['level'] = 'WARNING'
    efms = efmtool.calculate_efms(np.asarray(stoich, dtype=float), list(reversibilities),
                                  ['R' + str(i) for i in range(stoich.shape[1])],
                                  ['M' + str(i) for i in range(stoich.shape[0])], options)
    return np.sign(np.asarray(efms))


def get_rxn_link(model, con_comp, rxn_in_loops, efm_enumerator=None, efm_path=None):
    """Find the pairs of reactions in loops that are connected by an elementary cycle

    For each connected component, the stoichiometric matrix of the component's reactions is
    passed to the EFM enumerator. Reactions that are only in loops in the reverse direction are
    reversed, reactions in loops in both directions are treated as reversible. Two reactions are
    linked if they are both active in at least one elementary mode.

    If no enumerator is available, or if the enumeration fails for any component, the links
    are not computed and UNAVAILABLE is returned. Callers should then fall back to constraints
    over the whole connected components.

    Example:
        rxn_link = get_rxn_link(model, con_comp, rxn_in_loops)

    Args:
        model (cobra.Model):
            A metabolic model that is an instance of the cobra.Model class.

        con_comp (numpy.ndarray):
            Connected component of each reaction (0: not in loops).

        rxn_in_loops (numpy.ndarray):
            #reactions-by-2 bool matrix of loop directions (reverse, forward).

        efm_enumerator (optional (callable)): (Default: efmtool)
            Called as efm_enumerator(stoich, reversibilities) and must return the sign
            patterns of all elementary modes as a #reactions x #modes matrix.

        efm_path (optional (str)):
            Working directory for the enumerator calls. Defaults to the efmtool installation
            when efmtool is used.

    Returns:
        (sparse.csr_matrix or str):
        #reactions-by-#reactions matrix with rxn_link[i, j] = 1 if reactions i and j are connected
        by an elementary cycle, or UNAVAILABLE.
    """
    if rxn_in_loops is None or con_comp is None:
        raise ValueError('Reaction links require loop directions and connected components (preprocessing level 4).')
    if efm_enumerator is None:
        if not efmtool_available():
            logging.warning('efmtool not available. Links between reactions in loops are not computed.')
            return UNAVAILABLE
        efm_enumerator = efmtool_sign_modes
        if efm_path is None:
            efm_path = efmtool_path()
    con_comp = np.asarray(con_comp, dtype=int)
    rxn_in_loops = np.asarray(rxn_in_loops, dtype=bool)
    S = sparse.csc_matrix(create_stoichiometric_matrix(model))
    numr = S.shape[1]
    rxn_link = sparse.lil_matrix((numr, numr))
    first_call = True
    for j_c in range(1, con_comp.max(initial=0) + 1):
        rxn_jc = np.flatnonzero(con_comp == j_c)
        if len(rxn_jc) == 0:
            continue
        S_c = S[:, rxn_jc].toarray()
        S_c = S_c[np.any(S_c != 0, axis=1), :]
        # reactions only in loops in the reverse direction are reversed
        rev_only = rxn_in_loops[rxn_jc, 0] & ~rxn_in_loops[rxn_jc, 1]
        S_c[:, rev_only] = -S_c[:, rev_only]
        rev = np.all(rxn_in_loops[rxn_jc, :], axis=1)
        try:
            if not first_call:
                time.sleep(EFM_CALL_DELAY)
            first_call = False
            with WorkingDirectory(efm_path):
                efms = np.asarray(efm_enumerator(S_c, [int(r) for r in rev]))
            if efms.ndim != 2 or efms.shape[0] != len(rxn_jc):
                raise ValueError('EFM matrix of component ' + str(j_c) + ' has shape ' + str(efms.shape) + ', expected ' +
                                 str(len(rxn_jc)) + ' rows.')
        except Exception:
            logging.error('Error encountered during calculation of EFMs:\n' + traceback.format_exc())
            return UNAVAILABLE
        active = efms != 0
        for j in range(len(rxn_jc)):
            linked = np.any(active[:, active[j, :]], axis=1)
            rxn_link[rxn_jc[j], rxn_jc] = linked.astype(float)
    return sparse.csr_matrix(rxn_link)
