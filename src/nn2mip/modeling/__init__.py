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

"""Formulation of ReLU networks as mixed-integer linear programs."""

from .bounds import improve_bounds, network_bounds, propagate_bounds
from .relu_network import ReLUNetworkConstr, nn_to_mip
from .tightening import TighteningMode, neuron_bounds, tighten_layer
