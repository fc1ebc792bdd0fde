"""Assembly of the loop law MILP: structure, validation and loopless solutions."""
import logging
import pytest
import numpy as np
from scipy import sparse
from cobra.util import create_stoichiometric_matrix
import looplaw as ll

MV = ll.MV_DEFAULT
MG = ll.MG_DEFAULT


@pytest.fixture
def triangle_info(model_triangle):
    return ll.find_loop_info(model_triangle, preprocess=1)


def test_block_structure(model_triangle, triangle_info):
    """Rows vU, vL, gU, gL and eq are appended in order, followed by columns z and g."""
    lp = ll.build_lp_from_model(model_triangle)
    milp, loop_info = ll.add_loop_law_constraints(lp, model_triangle, loop_info=triangle_info)
    assert (milp.A.shape == (3 + 4 * 3 + 1, 5 + 2 * 3))
    assert (milp.csense == 'EEE' + 'LLL' + 'GGG' + 'LLL' + 'GGG' + 'E')
    assert (milp.b[3:] == [0] * 3 + [-MV] * 3 + [MG] * 3 + [1] * 3 + [0])
    assert (milp.vartype == 'CCCCC' + 'BBB' + 'CCC')
    assert (milp.lb[5:] == [0] * 3 + [-ll.BDG_DEFAULT] * 3)
    assert (milp.ub[5:] == [1] * 3 + [ll.BDG_DEFAULT] * 3)
    assert (milp.c[5:] == [0] * 6)
    assert (milp.x0 == [])
    assert (loop_info.con == {'vU': [3, 4, 5], 'vL': [6, 7, 8], 'gU': [9, 10, 11], 'gL': [12, 13, 14], 'eq': [15]})
    assert (loop_info.var == {'z': [5, 6, 7], 'g': [8, 9, 10]})
    assert (list(loop_info.rxn_in_loop_ids) == [0, 1, 2, -1, -1])
    A = milp.A.toarray()
    for k in range(3):
        for row in (loop_info.con['vU'][k], loop_info.con['vL'][k]):
            assert (A[row, k] == 1 and A[row, loop_info.var['z'][k]] == -MV)
            assert (np.count_nonzero(A[row]) == 2)
        for row in (loop_info.con['gU'][k], loop_info.con['gL'][k]):
            assert (A[row, loop_info.var['z'][k]] == MG + 1 and A[row, loop_info.var['g'][k]] == 1)
            assert (np.count_nonzero(A[row]) == 2)
    assert np.allclose(A[15], [0] * 8 + [1, 1, 1])
    assert np.allclose(A[:3, 5:], 0)
    assert (milp.loop_info is loop_info)


@pytest.mark.timeout(60)
@pytest.mark.parametrize("preprocess", [1, 2, 3, 4])
def test_dimensions_all_levels(model_figure_eight, nullspace_sign_modes, preprocess):
    """The MILP grows by 2*nint columns and 4*nint + lint rows at every level."""
    lp = ll.build_lp_from_model(model_figure_eight)
    milp, loop_info = ll.add_loop_law_constraints(lp,
                                                  model_figure_eight,
                                                  preprocess=preprocess,
                                                  efm_enumerator=nullspace_sign_modes,
                                                  seed=3)
    nint = int(np.count_nonzero(loop_info.rxn_in_loop_ids >= 0))
    lint = loop_info.N.shape[1]
    assert (nint == 5 and lint == 2)
    assert (milp.A.shape == (4 + 4 * nint + lint, 5 + 2 * nint))
    assert (loop_info.preprocess == preprocess)
    S = create_stoichiometric_matrix(model_figure_eight)
    assert np.allclose(S @ loop_info.N.toarray(), 0, atol=1e-6)
    if preprocess == 4:
        assert (loop_info.link_available())


def test_vartype_and_quadratic_term_kept(model_triangle, triangle_info, caplog):
    """An extra binary column and a quadratic term are carried into the MILP."""
    S = sparse.csr_matrix(create_stoichiometric_matrix(model_triangle))
    A = sparse.hstack((S, sparse.csr_matrix((3, 1))), format='csr')
    F = sparse.diags([1.0] * 6, format='csr')
    lp = ll.LinearProgram(A, [0] * 3, lb=[-1000] * 3 + [0] * 3, ub=[1000] * 5 + [1], F=F, vartype='CCCCCB')
    with caplog.at_level(logging.WARNING):
        milp, _ = ll.add_loop_law_constraints(lp, model_triangle, loop_info=triangle_info)
    assert ('Extra variables' in caplog.text)
    assert (milp.vartype == 'CCCCCB' + 'BBB' + 'CCC')
    assert (milp.F.shape == (12, 12))
    assert np.allclose(milp.F[:6, :6].toarray(), np.eye(6))
    assert (milp.F[6:, :].nnz == 0 and milp.F[:, 6:].nnz == 0)


def test_permuted_rxn_index(model_triangle, triangle_info):
    """Loop rows reference the LP columns given by rxn_index."""
    S = create_stoichiometric_matrix(model_triangle)
    order = [4, 2, 0, 1, 3]
    A = np.zeros((3, 5))
    A[:, order] = S
    lp = ll.LinearProgram(sparse.csr_matrix(A), [0] * 3, lb=[-1000] * 5, ub=[1000] * 5)
    milp, loop_info = ll.add_loop_law_constraints(lp, model_triangle, rxn_index=order, loop_info=triangle_info)
    for k, col in enumerate(order[:3]):
        assert (milp.A[loop_info.con['vU'][k], col] == 1)


@pytest.mark.parametrize("rxn_index", [[0, 1, 2, 3], [0, 1, 2, 3, 5], [0, 1, 2, 3, 3], [0, 1, 2.0, 3, 4], [-1, 1, 2, 3, 4]])
def test_invalid_rxn_index(model_triangle, triangle_info, rxn_index):
    lp = ll.build_lp_from_model(model_triangle)
    with pytest.raises(ValueError):
        ll.add_loop_law_constraints(lp, model_triangle, rxn_index=rxn_index, loop_info=triangle_info)


def test_lp_narrower_than_model(model_triangle, triangle_info):
    lp = ll.LinearProgram(sparse.csr_matrix(np.ones((1, 4))), [0])
    with pytest.raises(ValueError):
        ll.add_loop_law_constraints(lp, model_triangle, loop_info=triangle_info)


def test_invalid_configuration(model_triangle, triangle_info):
    lp = ll.build_lp_from_model(model_triangle)
    with pytest.raises(ValueError):
        ll.add_loop_law_constraints(lp, model_triangle, loop_info=triangle_info, unknown_key=1)
    with pytest.raises(ValueError):
        ll.add_loop_law_constraints(lp, model_triangle, loop_info=triangle_info, encoding=ll.SPLIT_INDICATORS)
    with pytest.raises(ValueError):
        ll.add_loop_law_constraints(lp, model_triangle, loop_info=triangle_info, encoding=ll.RANGED_ROWS)
    with pytest.raises(ValueError):
        ll.add_loop_law_constraints(lp, model_triangle, loop_info=triangle_info, encoding='other')
    with pytest.raises(ValueError):
        ll.add_loop_law_constraints(lp, model_triangle, loop_info=triangle_info, Mv=0)
    with pytest.raises(ValueError):
        ll.add_loop_law_constraints(lp, model_triangle, preprocess=0)
    with pytest.raises(ValueError):
        ll.find_loop_info(model_triangle, 1, encoding=ll.SINGLE_INDICATOR)


def test_loop_info_mismatch(model_triangle, model_two_triangles):
    lp = ll.build_lp_from_model(model_triangle)
    with pytest.raises(ValueError):
        ll.add_loop_law_constraints(lp, model_triangle, loop_info=ll.find_loop_info(model_two_triangles, 1))


def test_big_m_warning(model_triangle, triangle_info, caplog):
    lp = ll.build_lp_from_model(model_triangle)
    lp.ub[0] = 1e5
    with caplog.at_level(logging.WARNING):
        ll.add_loop_law_constraints(lp, model_triangle, loop_info=triangle_info)
    assert ('exceed Mv' in caplog.text)
    caplog.clear()
    with caplog.at_level(logging.WARNING):
        ll.add_loop_law_constraints(lp, model_triangle, loop_info=triangle_info, Mv=1e6)
    assert ('exceed Mv' not in caplog.text)


def test_unbounded_loop_reaction_warning(model_triangle, triangle_info, caplog):
    lp = ll.build_lp_from_model(model_triangle)
    lp.lb[1] = -np.inf
    with caplog.at_level(logging.WARNING):
        ll.add_loop_law_constraints(lp, model_triangle, loop_info=triangle_info)
    assert ('unbounded' in caplog.text)
    caplog.clear()
    lp.lb[1] = -1000
    lp.lb[3] = -np.inf
    with caplog.at_level(logging.WARNING):
        ll.add_loop_law_constraints(lp, model_triangle, loop_info=triangle_info)
    assert ('unbounded' not in caplog.text)


def test_inputs_not_modified(model_triangle, triangle_info):
    """The LP and the LoopInfo passed in stay untouched, results are reproducible."""
    lp = ll.build_lp_from_model(model_triangle)
    milp1, info1 = ll.add_loop_law_constraints(lp, model_triangle, loop_info=triangle_info)
    milp2, info2 = ll.add_loop_law_constraints(lp, model_triangle, loop_info=triangle_info)
    assert (lp.A.shape == (3, 5) and lp.vartype is None)
    assert (triangle_info.con == {} and triangle_info.var == {})
    assert (info1 is not triangle_info)
    assert ((milp1.A != milp2.A).nnz == 0)
    assert (milp1.b == milp2.b and milp1.csense == milp2.csense)
    assert (info1.con == info2.con and info1.var == info2.var)


def test_no_loops(model_chain, caplog):
    """Without reactions in loops, the LP is returned as a MILP without new rows or columns."""
    lp = ll.build_lp_from_model(model_chain)
    with caplog.at_level(logging.WARNING):
        milp, loop_info = ll.add_loop_law_constraints(lp, model_chain, preprocess=1)
    assert ('No reactions in loops' in caplog.text)
    assert (milp.A.shape == lp.A.shape)
    assert (milp.vartype == 'CCCC' and milp.x0 == [])
    assert (loop_info.var == {'z': [], 'g': []})


def test_no_loops_owns_matrices(model_chain):
    """The MILP returned without loop constraints shares no matrix data with the LP."""
    lp = ll.build_lp_from_model(model_chain)
    lp.F = sparse.identity(4, format='csr')
    milp, _ = ll.add_loop_law_constraints(lp, model_chain, preprocess=1)
    milp.A.data[:] = 7
    milp.F.data[:] = 7
    assert (not np.any(lp.A.data == 7))
    assert np.allclose(lp.F.toarray(), np.eye(4))


def test_reactions_outside_loop_directions(model_triangle, caplog):
    """Reactions in N without any loop direction are excluded from the constraints."""
    N = ll.internal_nullspace(model_triangle)
    rxn_in_loops = np.zeros((5, 2), dtype=bool)
    rxn_in_loops[:2, :] = True
    loop_info = ll.LoopInfo(N, rxn_in_loops, ll.connected_rxns_in_nullspace(N), None, 3)
    lp = ll.build_lp_from_model(model_triangle)
    with caplog.at_level(logging.WARNING):
        milp, info = ll.add_loop_law_constraints(lp, model_triangle, loop_info=loop_info)
    assert ('excluded' in caplog.text)
    assert (list(info.rxn_in_loop_ids) == [0, 1, -1, -1, -1])
    assert (milp.A.shape == (3 + 4 * 2 + 1, 5 + 4))


@pytest.mark.timeout(30)
def test_decode_loop_solution(model_triangle, triangle_info, is_feasible):
    """Indicators and energies are read back from a solution vector."""
    lp = ll.build_lp_from_model(model_triangle)
    milp, loop_info = ll.add_loop_law_constraints(lp, model_triangle, loop_info=triangle_info)
    x = np.zeros(milp.num_vars)
    x[:5] = [2, 2, 0, 2, 2]
    x[loop_info.var['z']] = [1, 1, 0]
    x[loop_info.var['g']] = [-3, -2, 5]
    assert (is_feasible(milp, dict(enumerate(x))))
    table = ll.decode_loop_solution(x, loop_info, model_triangle.reactions.list_attr('id'))
    assert (list(table.index) == ['R1', 'R2', 'R3'])
    assert (list(table['indicator']) == [1, 1, 0])
    assert (list(table['energy']) == [-3, -2, 5])
    with pytest.raises(ValueError):
        ll.decode_loop_solution(x, triangle_info)


@pytest.mark.timeout(60)
@pytest.mark.parametrize("preprocess", [1, 2, 3])
@pytest.mark.parametrize("rate", [1, 10])
def test_internal_cycle_infeasible(model_triangle, preprocess, rate, is_feasible):
    """Flux around the closed cycle is feasible in the LP but not in the loopless MILP."""
    lp = ll.build_lp_from_model(model_triangle)
    cycle = {0: rate, 1: rate, 2: rate, 3: 0, 4: 0}
    assert (is_feasible(lp, cycle))
    milp, _ = ll.add_loop_law_constraints(lp, model_triangle, preprocess=preprocess, seed=0)
    assert (not is_feasible(milp, cycle))
    assert (not is_feasible(milp, {0: -rate, 1: -rate, 2: -rate, 3: 0, 4: 0}))


@pytest.mark.timeout(60)
@pytest.mark.parametrize("preprocess", [1, 3])
def test_exchange_driven_flux_feasible(model_triangle, preprocess, is_feasible):
    """Flux from uptake to drain through part of the cycle stays feasible."""
    lp = ll.build_lp_from_model(model_triangle)
    milp, _ = ll.add_loop_law_constraints(lp, model_triangle, preprocess=preprocess, seed=0)
    assert (is_feasible(milp, {0: 5, 1: 5, 2: 0, 3: 5, 4: 5}))
    assert (is_feasible(milp, {0: 0, 1: 0, 2: -5, 3: 5, 4: 5}))


@pytest.mark.timeout(60)
def test_reused_loop_info_objectives(model_two_triangles, is_feasible):
    """One LoopInfo serves several LPs of the same model."""
    loop_info = ll.find_loop_info(model_two_triangles, preprocess=3, seed=0)
    for objective in ('OUT_C', 'OUT_F'):
        model_two_triangles.objective = objective
        lp = ll.build_lp_from_model(model_two_triangles)
        milp, info = ll.add_loop_law_constraints(lp, model_two_triangles, loop_info=loop_info)
        assert (milp.c[:10] == lp.c)
        assert (not is_feasible(milp, {j: 1 if j < 3 else 0 for j in range(10)}))
        assert (not is_feasible(milp, {j: 1 if 3 <= j < 6 else 0 for j in range(10)}))
    assert (loop_info.var == {})


@pytest.mark.timeout(60)
def test_forced_internal_flux_loopless(model_maintenance, is_feasible):
    """A maintenance reaction with lb > 0 does not disable the default preprocessing."""
    lp = ll.build_lp_from_model(model_maintenance)
    milp, loop_info = ll.add_loop_law_constraints(lp, model_maintenance, seed=0)
    assert (list(loop_info.rxn_in_loop_ids) == [0, 1, 2, -1, -1, -1, -1])
    assert (not is_feasible(milp, {0: 10, 1: 10, 2: 10, 3: 1, 4: 0, 5: 1, 6: 1}))
    assert (is_feasible(milp, {0: 1, 1: 1, 2: 0, 3: 2, 4: 1, 5: 1, 6: 1}))
