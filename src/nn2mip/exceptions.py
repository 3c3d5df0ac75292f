# Copyright © 2023-2026 Gurobi Optimization, LLC
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
# ==============================================================================

"""Exceptions for nn2mip.

All exceptions derive from :py:class:`NN2MIPError` and from the standard
Python exception that matches their meaning, so callers can catch either.

Errors reported by Gurobi itself (:gurobipy:`GurobiError`) are never
wrapped: license problems, size limits or internal solver failures reach
the caller unchanged.
"""


class NN2MIPError(Exception):
    """Base class for all nn2mip exceptions."""


class ParameterError(ValueError, NN2MIPError):
    """A parameter doesn't satisfy the preconditions of an operation.

    Raised before anything is added to the Gurobi model, e.g. when the
    length of a bound vector doesn't match the width of the network.
    """


class NoModel(NotImplementedError, NN2MIPError):
    """A network can't be formulated as a MILP.

    Parameters
    ----------
    predictor : str or object
        The network (or its name) that has the unsupported feature
    reason : str
        Description of what is not supported
    """

    def __init__(self, predictor, reason):
        predictor_name = (
            predictor if isinstance(predictor, str) else type(predictor).__name__
        )
        super().__init__(f"Can't do model for {predictor_name}: {reason}")


class NotRegistered(NotImplementedError, NN2MIPError):
    """Predictor type has no registered convertor to a network.

    Parameters
    ----------
    predictor : str
        Name of the predictor type
    """

    def __init__(self, predictor):
        super().__init__(
            f"Object of type {predictor} is not registered/supported with nn2mip"
        )


class NoSolution(RuntimeError, NN2MIPError):
    """Solution values were requested from a Gurobi model that has none."""

    def __init__(self, message=None):
        if message is None:
            message = "No solution available"
        super().__init__(message)
