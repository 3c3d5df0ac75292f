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

"""Description of the sequential dense networks that can be formulated."""

from enum import Enum

import numpy as np

from ..exceptions import NoModel, ParameterError


class Activation(Enum):
    """Activation function applied after the affine map of a layer."""

    RELU = "relu"
    IDENTITY = "identity"

    @classmethod
    def from_name(cls, name):
        """Activation from its name, accepting the aliases used by ML frameworks."""
        if isinstance(name, cls):
            return name
        aliases = {"linear": "identity", "none": "identity"}
        name = f"{name}".lower()
        try:
            return cls(aliases.get(name, name))
        except ValueError:
            raise NoModel(name, "No implementation for activation function") from None

    def apply(self, values):
        if self is Activation.RELU:
            return np.maximum(values, 0.0)
        return values


class DenseLayer:
    """One dense layer of a network.

    Parameters
    ----------
    weights : array_like
        Weight matrix of shape (n_outputs, n_inputs).
    bias : array_like
        Bias vector of length n_outputs.
    activation : Activation or str
        Activation function of the layer.
    """

    def __init__(self, weights, bias, activation):
        weights = np.array(weights, dtype=np.float64)
        bias = np.array(bias, dtype=np.float64).reshape(-1)
        if weights.ndim != 2:
            raise ParameterError(
                f"Layer weights should be a matrix, got {weights.ndim} dimensions"
            )
        if bias.shape[0] != weights.shape[0]:
            raise ParameterError(
                "Non-conforming dimension between weights and bias: "
                + f"{weights.shape[0]} != {bias.shape[0]}"
            )
        weights.flags.writeable = False
        bias.flags.writeable = False
        self._weights = weights
        self._bias = bias
        self._activation = Activation.from_name(activation)

    @property
    def weights(self):
        """Weight matrix (n_outputs, n_inputs)."""
        return self._weights

    @property
    def bias(self):
        return self._bias

    @property
    def activation(self):
        return self._activation

    @property
    def n_inputs(self):
        return self._weights.shape[1]

    @property
    def n_outputs(self):
        return self._weights.shape[0]

    def forward(self, values):
        """Apply the layer to values."""
        return self.activation.apply(values @ self.weights.T + self.bias)

    def __repr__(self):
        return (
            f"DenseLayer({self.n_inputs} -> {self.n_outputs}, "
            f"{self.activation.value})"
        )


class Network:
    """A sequential ReLU network.

    All layers but the last use the ReLU activation and the last one the
    identity. Layers are stored in a tuple and their arrays are read-only,
    the network can't be modified once created.

    Parameters
    ----------
    layers : iterable of DenseLayer
        The layers of the network, from input to output.
    name : str, optional
        Name of the network, used as default name of its formulation.
    """

    def __init__(self, layers, name="network"):
        layers = tuple(layers)
        if len(layers) == 0:
            raise ParameterError("A network needs at least one layer")
        for i, layer in enumerate(layers[:-1]):
            if layer.activation is not Activation.RELU:
                raise NoModel(
                    name,
                    f"hidden layer {i + 1} uses {layer.activation.value}, "
                    + "only relu is supported for hidden layers",
                )
        if layers[-1].activation is not Activation.IDENTITY:
            raise NoModel(
                name,
                f"output layer uses {layers[-1].activation.value}, "
                + "it should use the identity",
            )
        for i in range(1, len(layers)):
            if layers[i].n_inputs != layers[i - 1].n_outputs:
                raise ParameterError(
                    f"Layer {i + 1} expects {layers[i].n_inputs} inputs but "
                    + f"layer {i} has {layers[i - 1].n_outputs} outputs"
                )
        self._layers = layers
        self.name = name

    @classmethod
    def from_arrays(cls, weights, biases, name="network"):
        """Make a network from lists of weight matrices and bias vectors.

        Hidden layers get the ReLU activation, the last layer the identity.
        """
        if len(weights) != len(biases):
            raise ParameterError(
                f"Got {len(weights)} weight matrices but {len(biases)} bias vectors"
            )
        n_layers = len(weights)
        return cls(
            [
                DenseLayer(
                    w,
                    b,
                    Activation.IDENTITY if k == n_layers - 1 else Activation.RELU,
                )
                for k, (w, b) in enumerate(zip(weights, biases))
            ],
            name=name,
        )

    def __iter__(self):
        return self._layers.__iter__()

    def __len__(self):
        return len(self._layers)

    def __getitem__(self, index):
        return self._layers[index]

    @property
    def layers(self):
        return self._layers

    @property
    def n_inputs(self):
        """Width of the input of the network."""
        return self._layers[0].n_inputs

    @property
    def n_outputs(self):
        """Width of the output of the network."""
        return self._layers[-1].n_outputs

    @property
    def neuron_count(self):
        """Number of neurons of each layer (input layer excluded)."""
        return [layer.n_outputs for layer in self._layers]

    def forward(self, input_values):
        """Evaluate the network on input_values.

        input_values can be a single input vector or a 2d array with one
        input per row.
        """
        values = np.asarray(input_values, dtype=np.float64)
        for layer in self._layers:
            values = layer.forward(values)
        return values

    def __repr__(self):
        widths = "x".join(str(n) for n in [self.n_inputs] + self.neuron_count)
        return f"Network({self.name}, {widths})"
