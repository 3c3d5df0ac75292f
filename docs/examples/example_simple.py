"""
Usage Example
=============

In this page, we provide a simple example of using the nn2mip package.

The example is entirely abstract. Its aim is only to illustrate the
basic functionalities of the package in the most simple way.

We train a small `multi-layer perceptron regressor
<https://scikit-learn.org/stable/modules/generated/sklearn.neural_network.MLPRegressor.html>`__
on random data obtained with
`make_regression <https://scikit-learn.org/stable/modules/generated/sklearn.datasets.make_regression.html>`__
and look for the input in a box that minimizes its prediction.

"""

import gurobipy as gp
import numpy as np
from sklearn.datasets import make_regression
from sklearn.neural_network import MLPRegressor

from nn2mip import SolverParams, forward_pass, nn_to_mip

######################################################################
# We start by building artificial data to train our regression. To do so,
# we use *make_regression* to obtain data with 4 features, then create
# the *MLPRegressor* object and fit it.
#

X, y = make_regression(n_features=4, noise=1.0, random_state=1)

nn = MLPRegressor(hidden_layer_sizes=[10] * 2, max_iter=10000, random_state=1)

nn.fit(X, y)


######################################################################
# The input of the network is restricted to the box spanned by the
# training data. The function :func:`nn_to_mip <nn2mip.nn_to_mip>`
# creates a Gurobi model with the formulation of the network. With
# ``tighten_bounds="standard"`` the big-M constants of each neuron are
# computed by solving two small optimization problems.
#
# It returns the modeling object and the bounds on the pre-activation
# values of every layer.
#

input_ub = X.max(axis=0)
input_lb = X.min(axis=0)

nn_constr, bounds_upper, bounds_lower = nn_to_mip(
    nn,
    input_ub,
    input_lb,
    solver_params=SolverParams(silent=True, time_limit=10),
    tighten_bounds="standard",
)

nn_constr.print_stats()

print("Bounds of the output", bounds_lower[-1], bounds_upper[-1])


######################################################################
# The formulation can be used to evaluate the network: the input is fixed
# and the model solved. The result should match the prediction of the
# regressor.
#

print("Forward pass", forward_pass(nn_constr, X[0]))
print("Prediction", nn.predict(X[:1]))


######################################################################
# The model returned is a regular Gurobi model. We set an objective and
# optimize it to find the input with the smallest prediction.
#

m = nn_constr.gp_model
m.setObjective(nn_constr.output.sum(), gp.GRB.MINIMIZE)

m.optimize()

print("Minimal prediction", m.ObjVal, "for input", nn_constr.input_values)


######################################################################
# The method :func:`get_error <nn2mip.ReLUNetworkConstr.get_error>`
# checks that the solution computed by Gurobi is correct with respect to
# the network.
#

print("Maximal error", np.max(nn_constr.get_error()))


######################################################################
# Finally, we can remove everything that was added to the model with the
# method :func:`remove() <nn2mip.ReLUNetworkConstr.remove>`.
#

nn_constr.remove()


######################################################################
# Copyright © 2023-2026 Gurobi Optimization, LLC
#
