import gurobipy as gp
import pytest

from nn2mip import SolverParams
from nn2mip.exceptions import NN2MIPError, ParameterError


class TestSolverParams:
    def test_defaults(self):
        params = SolverParams()
        assert params.solver == "gurobi"
        assert params.silent
        assert params.threads == 0
        assert not params.relax
        assert params.time_limit == 0.0
        assert params.gurobi_params() == {"OutputFlag": 0, "Threads": 0}

    def test_gurobi_params(self):
        params = SolverParams(solver="Gurobi", silent=False, threads=2, time_limit=30)
        assert params.gurobi_params() == {
            "OutputFlag": 1,
            "Threads": 2,
            "TimeLimit": 30.0,
        }

    @pytest.mark.parametrize(
        "kwargs",
        [{"solver": "cplex"}, {"threads": -1}, {"time_limit": -1.0}],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ParameterError):
            SolverParams(**kwargs)

    def test_from_dict(self):
        params = SolverParams.from_dict({"relax": True, "threads": 4})
        assert params.relax
        assert params.threads == 4
        with pytest.raises(ParameterError) as excinfo:
            SolverParams.from_dict({"relax": True, "mip_gap": 0.1})
        assert "mip_gap" in str(excinfo.value)

    def test_error_hierarchy(self):
        with pytest.raises(ValueError):
            SolverParams(threads=-2)
        with pytest.raises(NN2MIPError):
            SolverParams(threads=-2)

    def test_apply(self):
        with gp.Env(params={"OutputFlag": 0}) as env, gp.Model(env=env) as gpm:
            SolverParams(threads=1, time_limit=5).apply(gpm)
            assert gpm.Params.Threads == 1
            assert gpm.Params.TimeLimit == 5.0
            assert gpm.Params.OutputFlag == 0

    def test_repr(self):
        assert "relax=True" in repr(SolverParams(relax=True))
