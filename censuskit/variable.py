from typing import List, Dict, Set, Union, Tuple, NamedTuple
from collections import defaultdict
from itertools import zip_longest
from pandas import DataFrame


class UnknownGroup(Exception):
    ...


class VariableError(Exception):
    pass


class Group:
    """
    An object that represents a single Census group (table) made up of Census
    variables.

    Parameters
    ==========
    name : :obj:`str`
        The name of the group, for example ``B19013``.
    concept : :obj:`str`
        The concept (description) of the group.
    variables : :obj:`list` of :obj:`str`
        The names of the variables in the group.
    """
    def __init__(self, name: str, concept: str, variables: List[str]) -> None:
        self.name = name
        self.concept = concept
        self.variables = sorted(variables)

    def __repr__(self) -> str:
        concept_str = 'None' if self.concept is None else self.concept[:100]
        if len(self.variables) <= 3:
            var_str = '[' + ', '.join(self.variables) + ']'
        else:
            var_str = f'[{self.variables[0]}, ..., {self.variables[-1]}]'
        return f'{self.name}\n  concept: {concept_str}\n  variables ({len(self.variables)}): {var_str}\n'


class GroupCollection:
    """
    An object that represents a collection of :class:`.Group` objects.
    """
    def __init__(self) -> None:
        self._group_map : Dict[str, Group] = {}

    def __iter__(self):
        return iter(self._group_map.values())

    def __len__(self):
        return len(self._group_map)

    def __repr__(self) -> str:
        return f'GroupCollection of {len(self)} groups'

    def __contains__(self, group: str) -> bool:
        return group in self._group_map

    def get(self, group: Union[str, Group]) -> Group:
        """
        Returns the requested :class:`.Group`. Raises :class:`.UnknownGroup` if it
        does not exist.
        """
        if isinstance(group, Group):
            group = group.name

        if group in self._group_map:
            return self._group_map[group]
        raise UnknownGroup(f"The group '{group}' does not exist.")

    def _add(self, group: Group):
        self._group_map[group.name] = group

    def filter_by_term(self, term: Union[str, List[str]]) -> 'GroupCollection':
        """
        Keeps the groups whose concepts contain **all** of the given terms.
        """
        if isinstance(term, str):
            term = [term]

        terms = [t.lower() for t in term]
        gc = GroupCollection()
        for g in self._group_map.values():
            if g.concept is not None and all(t in g.concept.lower() for t in terms):
                gc._add(g)
        return gc

    def to_df(self) -> DataFrame:
        group_dicts = [{'name': g.name, 'concept': g.concept, 'variables': g.variables} for g in self._group_map.values()]
        return DataFrame(group_dicts, columns=['name', 'concept', 'variables']).sort_values(by='name').reset_index(drop=True)

    def to_list(self) -> List[Group]:
        return sorted(self._group_map.values(), key=lambda g : g.name)


class Variable:
    """
    An object representing a single Census variable.

    Parameters
    ==========
    name : :obj:`str`
        The name of the variable.
    info : dict of :obj:`str`: :obj:`str`
        The attributes of the variable, as listed in the dataset's
        ``variables.json``.

    Attributes
    ==========
    label : :obj:`str` or None
        The label (description) of the variable, lower-cased.
    group : :obj:`str` or None
        The Census group (table) the variable belongs to.
    concept : :obj:`str` or None
        The concept of the Census group the variable belongs to.
    type : :obj:`type` or None
        ``int`` or ``float`` for numeric variables.
    attributes : :obj:`str` or None
        Comma-separated names of the companion variables (margin of error,
        annotations).
    path : :obj:`tuple` of :obj:`str`
        The label split into its ``!!``-separated pieces, with the concept
        prepended. ``B19013_001E`` in the 2021 ACS has the path
        ``("median household income in the past 12 months ...", "estimate", "median household income ...")``.
    readable_path : :obj:`str`
        The path joined by " -> ".
    """
    def __init__(self, name: str, info: Dict[str, str]) -> None:
        self.name = name
        self.info = info
        self.label = info['label'].lower() if 'label' in info else name
        self.group = info.get('group', None)
        if self.group == 'N/A' or self.group == 'n/a':
            self.group = None
        self.concept = info['concept'].lower() if 'concept' in info else None
        if self.concept == 'n/a':
            self.concept = None
        predicate_type = info.get('predicateType', None)
        if predicate_type == 'int':
            self.type = int
        elif predicate_type == 'float':
            self.type = float
        else:
            self.type = None

        if name == 'GEO_ID':
            self.label = 'GEO_ID'
            self.group = None
            self.concept = None

        self._parse_label_parts(label_parts=self.label.split('!!'))

        self.attributes = info.get('attributes', None)
        self._attribute_map : Dict[str, AttributeVariable] = {}
        if self.attributes is not None:
            for attr in self.attributes.split(','):
                self._attribute_map[attr] = AttributeVariable(name=attr, owner=self)

    def __repr__(self) -> str:
        return f'{self.name}\n  group: {self.group}\n  concept: {self.concept}\n  path: [{self.readable_path}]\n'

    def _parse_label_parts(self, label_parts: List[str]) -> None:
        self.path = tuple([p.replace(':', '') for p in label_parts])
        if self.concept is not None:
            self.path = (self.concept,) + self.path
        self.parent_path = self.path[:-1]
        self.readable_path = ' -> '.join(g.replace('!', '') for g in self.path)

    @property
    def moe(self) -> Union[str, None]:
        """
        The name of this variable's margin of error companion, if it has one.
        """
        for attr, attr_variable in self._attribute_map.items():
            if attr_variable.attribute_type == 'margin of error':
                return attr
        return None


class AttributeVariable(Variable):
    def __init__(self, name: str, owner: Variable) -> None:
        i = 0
        for i, (n_c, o_c) in enumerate(zip_longest(name, owner.name)):
            if n_c != o_c:
                break
        suffix = name[i:]
        # B19013_001E -> B19013_001M shares every character but the last
        if suffix.startswith('M') and owner.name.endswith('E') and len(suffix) <= 2:
            self.attribute_type = 'margin of error' if suffix == 'M' else 'annotation of margin of error'
        elif suffix in ('A', 'EA', 'NA'):
            self.attribute_type = 'annotation'
        else:
            self.attribute_type = suffix

        self.name = name
        self.info = owner.info
        self.label = owner.label
        self.group = owner.group
        self.concept = owner.concept
        self.type = owner.type
        self.attributes = None
        self._attribute_map = {}
        self.path = owner.path + (self.attribute_type,)
        self.parent_path = owner.parent_path
        self.readable_path = owner.readable_path + f' -> {self.attribute_type}'


class RequestedVariable(NamedTuple):
    """
    A variable as the user asked for it, resolved against the dataset.

    ``output`` is the name the variable carries in the result, ``estimate`` and
    ``moe`` the API columns that hold its value and margin of error.
    """
    output: str
    estimate: str
    moe: Union[str, None]


class VariableCollection:
    """
    An object that represents a collection of :class:`.Variable` objects.

    Parameters
    ==========
    variables_json : dict of :obj:`str`: (dict of :obj:`str`: :obj:`str`)
        A dictionary detailing the attributes of each variable.
    """
    def __init__(self, variables_json: Dict[str, Dict[str, str]]) -> None:
        self._variable_map : Dict[str, Variable] = {}
        self._path_to_name_map : Dict[tuple, str] = {}
        self._variable_tree : Dict[tuple, Set[tuple]] = {}
        self._attribute_map : Dict[str, str] = {}

        self._group_map = defaultdict(set)
        self._group_collection = GroupCollection()

        for v_name in sorted(variables_json.keys()):
            v = Variable(name=v_name, info=variables_json[v_name])
            self._variable_map[v_name] = v
            self._path_to_name_map[v.path] = v_name
            self._variable_tree[v.path] = set()

            if v.group is not None:
                self._group_map[(v.group, v.concept)].add(v_name)

            if v.attributes is not None:
                for attr in v.attributes.split(','):
                    self._attribute_map[attr] = v.name

        for v in self._variable_map.values():
            if v.parent_path in self._variable_tree:
                self._variable_tree[v.parent_path].add(v.path)

        for (group, concept), variables in self._group_map.items():
            self._group_collection._add(group=Group(name=group, concept=concept, variables=variables))

    def __iter__(self):
        return iter(self._variable_map.values())

    def __len__(self):
        return len(self._variable_map)

    def __contains__(self, variable: str) -> bool:
        return self.get(variable) is not None

    def __repr__(self):
        return f'VariableCollection of {len(self)} variables'

    def _resolve(self, name: str) -> RequestedVariable:
        if name in self._variable_map:
            v = self._variable_map[name]
            if v.moe is not None and name.endswith('E'):
                return RequestedVariable(output=name[:-1], estimate=name, moe=v.moe)
            return RequestedVariable(output=name, estimate=name, moe=None)

        if f'{name}E' in self._variable_map:
            v = self._variable_map[f'{name}E']
            return RequestedVariable(output=name, estimate=v.name, moe=v.moe)

        if name in self._attribute_map:
            return RequestedVariable(output=name, estimate=name, moe=None)

        raise VariableError(f"The variable '{name}' does not exist.")

    def _build_variable_params(self, variables: Union['VariableCollection', List[str], List[Variable], Dict[str, str]] = None, table: Union[str, List[str]] = None, moe: bool = True) -> Tuple['VariableCollection', List[Dict[str, str]], List[RequestedVariable]]:
        variables = variables if variables is not None else []
        rename_map = {}
        if isinstance(variables, str):
            variable_names = [variables]
        elif isinstance(variables, VariableCollection):
            variable_names = variables.names
        elif isinstance(variables, dict) and all(isinstance(k, str) and isinstance(v, str) for k, v in variables.items()):
            # {output name: variable}
            variable_names = list(variables.values())
            rename_map = {v: k for k, v in variables.items()}
        elif isinstance(variables, list) and all(isinstance(v, (str, Variable)) for v in variables):
            variable_names = [v if isinstance(v, str) else v.name for v in variables]
        else:
            raise TypeError("the 'variables' argument only accepts one of:\n\t-a variable name\n\t-a list of variable names or 'Variable' objects\n\t-a 'VariableCollection' object\n\t-a dict of output names to variable names")

        if isinstance(table, str):
            table = [table]
        for t in table or []:
            variable_names += self.filter_by_group(group=t).names

        if len(variable_names) == 0:
            raise VariableError("Either 'variables' or 'table' must be supplied.")

        missing = []
        requested : List[RequestedVariable] = []
        seen = set()
        for v_name in variable_names:
            try:
                r = self._resolve(v_name)
            except VariableError:
                missing.append(v_name)
                continue
            if r.estimate in seen:
                continue
            seen.add(r.estimate)
            if v_name in rename_map:
                r = r._replace(output=rename_map[v_name])
            if not moe:
                r = r._replace(moe=None)
            requested.append(r)

        if missing:
            raise VariableError(f'The following variables do not exist: {missing}')

        api_names = []
        for r in requested:
            api_names.append(r.estimate)
            if r.moe is not None:
                api_names.append(r.moe)

        id_names = [n for n in ('NAME', 'GEO_ID') if n in self._variable_map]

        chunk_size = 50 - len(id_names)
        chunks = [api_names[i:i + chunk_size] for i in range(0, len(api_names), chunk_size)]
        variable_params_list = [{'get': ','.join(chunk + id_names)} for chunk in chunks]

        return self._mask([r.estimate for r in requested]), variable_params_list, requested

    def _mask(self, variables: List[Union[str, Variable]]) -> 'VariableCollection':
        variables_json = {}
        for v in variables:
            v_name = v.name if isinstance(v, Variable) else v
            if v_name in self._variable_map:
                variables_json[v_name] = self._variable_map[v_name].info
        return VariableCollection(variables_json)

    @property
    def names(self) -> List[str]:
        """
        A list of the names of each variable in the collection.
        """
        return list(self._variable_map.keys())

    @property
    def groups(self) -> GroupCollection:
        """
        The collection of groups associated with the variables in this collection.
        """
        return self._group_collection

    def get(self, variable: Union[str, Variable]) -> Union[Variable, None]:
        """
        Returns the requested :class:`.Variable` object if it exists, including
        margin of error and annotation companions. Otherwise, returns ``None``.
        """
        if isinstance(variable, Variable):
            variable = variable.name

        if variable in self._variable_map:
            return self._variable_map[variable]
        elif variable in self._attribute_map:
            return self._variable_map[self._attribute_map[variable]]._attribute_map.get(variable)
        return None

    def parent_of(self, variable: Union[str, Variable]) -> Union[Variable, None]:
        """
        Returns the parent of the requested variable. ``B01001_002E``
        (``sex by age -> estimate -> total -> male``) has the parent ``B01001_001E``
        (``sex by age -> estimate -> total``).
        """
        v = self.get(variable=variable)
        if v is not None and v.parent_path in self._path_to_name_map:
            return self.get(self._path_to_name_map[v.parent_path])
        return None

    def children_of(self, variable: Union[str, Variable]) -> 'VariableCollection':
        """
        Returns the children of the requested variable as a new
        :class:`.VariableCollection`.
        """
        v = self.get(variable=variable)
        if v is None:
            raise VariableError(f"The variable '{variable}' does not exist.")
        return self._mask([self._path_to_name_map[c] for c in self._variable_tree.get(v.path, set())])

    def filter_by_term(self, term: Union[str, List[str]], by: str = 'label') -> 'VariableCollection':
        """
        Returns a new :class:`.VariableCollection` consisting of all variables
        that match the search. Can filter by each variable's label or by the
        concept of each variable's group.

        Parameters
        ==========
        term : :obj:`str` or :obj:`list` of :obj:`str`
            The search string or strings. All of them must match.
        by : :obj:`str` = 'label'
            Either 'label' or 'concept'.
        """
        if isinstance(term, str):
            term = [term]

        terms = [t.lower() for t in term]
        if by == 'label':
            v_names = [n for n, v in self._variable_map.items() if all(t in v.label.lower() for t in terms)]
        elif by == 'concept':
            v_names = [n for n, v in self._variable_map.items() if v.concept is not None and all(t in v.concept for t in terms)]
        else:
            raise ValueError("'by' should either be 'label' or 'concept'")
        return self._mask(v_names)

    def filter_by_group(self, group: Union[str, Group]) -> 'VariableCollection':
        """
        Returns a new :class:`.VariableCollection` consisting of all variables within
        the given group.
        """
        g = self.groups.get(group=group)
        return self._mask(g.variables)

    def to_df(self) -> DataFrame:
        """
        Converts the collection into a :class:`pandas.DataFrame` with each
        variable's name, label, concept, group and type. This is the table a user
        browses to find variable codes.
        """
        var_dicts = []
        for v_name, v in self._variable_map.items():
            var_dicts.append({
                'name': v_name,
                'label': v.info.get('label', v.label),
                'concept': v.info.get('concept', None),
                'group': v.group,
                'type': v.type.__name__ if v.type is not None else None,
            })

        return DataFrame(var_dicts, columns=['name', 'label', 'concept', 'group', 'type'])

    def to_list(self) -> List[Variable]:
        return list(self._variable_map.values())
