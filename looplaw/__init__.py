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
"""looplaw package: loop law constraints for constraint-based metabolic models"""

from importlib.util import find_spec as module_exists
from .names import *

avail_efmtool = module_exists("efmtool") is not None

from .linearProblem import *
from .loopInfo import *
from .nullspace import *
from .components import *
from .rxnLinks import *
from .combineVars import *
from .loopLawConstraints import *
