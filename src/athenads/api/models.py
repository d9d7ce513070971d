#
#  Copyright (C) 2017-2025 Dremio Corporation
#
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.
#
"""
Wire models for the backend proxy query endpoint.

Field names follow the proxy's camelCase JSON; python attributes are
snake_case and the models accept either on input.
"""
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class OutboundQuery(WireModel):
    datasource_id: Optional[int] = Field(default=None, alias="datasourceId")
    ref_id: str = Field(alias="refId")
    query_type: str = Field(alias="queryType")
    named_query: str = Field(alias="namedQuery")
    time_column: str = Field(alias="timeColumn")
    metric_column: str = Field(alias="metricColumn")
    value_columns: str = Field(alias="valueColumns")
    execution_id: str = Field(alias="executionId")
    format: str
    use_cache: bool = Field(alias="useCache")


class QueryRequest(WireModel):
    from_: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None
    queries: List[OutboundQuery] = Field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class SeriesPayload(WireModel):
    name: str = ""
    points: List[List[Any]] = Field(default_factory=list)
    tags: Dict[str, Any] = Field(default_factory=dict)


class TableColumn(WireModel):
    text: str


class TablePayload(WireModel):
    columns: List[TableColumn] = Field(default_factory=list)
    rows: List[List[Any]] = Field(default_factory=list)


class ColumnInfo(WireModel):
    col_name: str = Field(alias="colName")
    # engine enum value; unknown values are kept and resolved permissively
    col_type: Optional[Union[int, str]] = Field(default=None, alias="colType")


class ResultMeta(WireModel):
    col_infos: List[ColumnInfo] = Field(default_factory=list, alias="colInfos")


class QueryResult(WireModel):
    ref_id: Optional[str] = Field(default=None, alias="refId")
    series: Optional[List[SeriesPayload]] = None
    tables: Optional[List[TablePayload]] = None
    meta: Optional[ResultMeta] = None
    error: Optional[str] = None


class QueryResponse(WireModel):
    results: Dict[str, QueryResult] = Field(default_factory=dict)
    status: Optional[int] = None
