import pytest
import numpy as np
from cobra import Model, Metabolite, Reaction
from scipy.optimize import milp, LinearConstraint, Bounds
import looplaw as ll


def build_model(model_id, reactions):
    """Build a cobra model from (id, {metabolite: coefficient}, lb, ub) tuples"""
    model = Model(model_id)
    mets = {}
    for rxn_id, stoich, lb, ub in reactions:
        r = Reaction(rxn_id, lower_bound=lb, upper_bound=ub)
        r.add_metabolites({mets.setdefault(m, Metabolite(m, compartment='c')): v for m, v in stoich.items()})
        model.add_reactions([r])
    return model


@pytest.fixture
def model_triangle():
    # A -> B -> C -> A, fed by an uptake of A and drained from C
    return build_model('triangle', [
        ('R1', {'A': -1, 'B': 1}, -1000, 1000),
        ('R2', {'B': -1, 'C': 1}, -1000, 1000),
        ('R3', {'C': -1, 'A': 1}, -1000, 1000),
        ('EX_A', {'A': 1}, 0, 1000),
        ('OUT_C', {'C': -1}, 0, 1000),
    ])


@pytest.fixture
def model_reverse_triangle():
    # R3 can only run backwards, so the loop can only run backwards as a whole
    return build_model('reverse_triangle', [
        ('R1', {'A': -1, 'B': 1}, -1000, 1000),
        ('R2', {'B': -1, 'C': 1}, -1000, 1000),
        ('R3', {'C': -1, 'A': 1}, -1000, 0),
        ('EX_A', {'A': 1}, 0, 1000),
        ('OUT_C', {'C': -1}, 0, 1000),
    ])


@pytest.fixture
def model_maintenance():
    # triangle with a maintenance reaction that must carry flux (lb > 0)
    return build_model('maintenance', [
        ('R1', {'A': -1, 'B': 1}, -1000, 1000),
        ('R2', {'B': -1, 'C': 1}, -1000, 1000),
        ('R3', {'C': -1, 'A': 1}, -1000, 1000),
        ('EX_A', {'A': 1}, 0, 1000),
        ('OUT_C', {'C': -1}, 0, 1000),
        ('ATPM', {'A': -1, 'D': 1}, 1, 1000),
        ('OUT_D', {'D': -1}, 0, 1000),
    ])


@pytest.fixture
def model_two_triangles():
    return build_model('two_triangles', [
        ('R1', {'A': -1, 'B': 1}, -1000, 1000),
        ('R2', {'B': -1, 'C': 1}, -1000, 1000),
        ('R3', {'C': -1, 'A': 1}, -1000, 1000),
        ('R4', {'D': -1, 'E': 1}, -1000, 1000),
        ('R5', {'E': -1, 'F': 1}, -1000, 1000),
        ('R6', {'F': -1, 'D': 1}, -1000, 1000),
        ('EX_A', {'A': 1}, 0, 1000),
        ('EX_D', {'D': 1}, 0, 1000),
        ('OUT_C', {'C': -1}, 0, 1000),
        ('OUT_F', {'F': -1}, 0, 1000),
    ])


@pytest.fixture
def model_figure_eight():
    # two cycles sharing R1 and R3: R1-R2-R3 and R1-R4-R5-R3
    return build_model('figure_eight', [
        ('R1', {'A': -1, 'B': 1}, -1000, 1000),
        ('R2', {'B': -1, 'C': 1}, -1000, 1000),
        ('R3', {'C': -1, 'A': 1}, -1000, 1000),
        ('R4', {'B': -1, 'D': 1}, -1000, 1000),
        ('R5', {'D': -1, 'C': 1}, -1000, 1000),
    ])


@pytest.fixture
def model_isoenzymes():
    # two reactions with the same stoichiometry form a cycle R1 - R2
    return build_model('isoenzymes', [
        ('R1', {'A': -1, 'B': 1}, -1000, 1000),
        ('R2', {'A': -1, 'B': 1}, -1000, 1000),
        ('EX_A', {'A': 1}, 0, 1000),
        ('OUT_B', {'B': -1}, 0, 1000),
    ])


@pytest.fixture
def model_chain():
    return build_model('chain', [
        ('EX_A', {'A': 1}, 0, 1000),
        ('R1', {'A': -1, 'B': 1}, -1000, 1000),
        ('R2', {'B': -1, 'C': 1}, 0, 1000),
        ('OUT_C', {'C': -1}, 0, 1000),
    ])


@pytest.fixture
def nullspace_sign_modes():
    """EFM enumerator stub: sign patterns of the null space basis vectors"""

    def enumerate_modes(stoich, reversibilities):
        return np.sign(ll.sparse_null(stoich).toarray())

    return enumerate_modes


@pytest.fixture
def is_feasible():
    """Check feasibility of a LinearProgram with scipy's MILP solver, optionally with fixed columns"""

    def solve(prob, fixed=None):
        lb = np.array(prob.lb, dtype=float)
        ub = np.array(prob.ub, dtype=float)
        for j, v in (fixed or {}).items():
            lb[j] = v
            ub[j] = v
        b_L, b_U = prob.row_bounds()
        vtype = prob.vartype if prob.vartype is not None else ll.CONTINUOUS * prob.num_vars
        integrality = np.array([1 if t == ll.BINARY else 0 for t in vtype])
        res = milp(np.zeros(prob.num_vars),
                   constraints=LinearConstraint(prob.A, b_L, b_U),
                   integrality=integrality,
                   bounds=Bounds(lb, ub))
        return res.status == 0

    return solve
